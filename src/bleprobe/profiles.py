"""
Printer profiles and profile matching.

A profile describes a known printer: which GATT service identifies it,
which characteristic accepts print data, how to chunk writes and which
wire protocol it speaks.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .errors import ProfileError
from .gatt import GattSnapshot
from .uuids import normalize

logger = logging.getLogger(__name__)


class Protocol(str, Enum):
    """Wire protocol families."""

    ESCPOS = "escpos"
    D1 = "d1"
    GT01 = "gt01"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BleParams:
    """BLE transport parameters for a profile.

    Attributes:
        service_uuid: Identifying service (normalized)
        write_char_uuid: Characteristic that accepts print data (normalized)
        notify_char_uuid: Optional status/notify characteristic (normalized)
        chunk_size: Bytes per write
        chunk_delay: Delay between writes in milliseconds
        mtu: Negotiated ATT MTU the profile was verified with
    """
    service_uuid: str
    write_char_uuid: str
    notify_char_uuid: Optional[str] = None
    chunk_size: int = 20
    chunk_delay: int = 80
    mtu: int = 23


@dataclass(frozen=True)
class PaperSize:
    width_px: int = 384
    width_mm: int = 58


@dataclass(frozen=True)
class Profile:
    """A known printer definition."""

    id: str
    name: str
    protocol: Protocol
    ble: BleParams
    paper: PaperSize = field(default_factory=PaperSize)
    variants: tuple = ()
    notes: Optional[str] = None
    device_name_pattern: Optional[str] = None
    # Higher wins when a device matches several profiles
    priority: int = 0

    @property
    def is_identification_only(self) -> bool:
        """True when the profile has no confirmed working write protocol."""
        return bool(self.notes and "Unimplemented" in self.notes)

    @classmethod
    def from_dict(cls, data: dict) -> "Profile":
        """Build a profile from its JSON form.

        Raises:
            ProfileError: If required fields are missing or invalid
        """
        try:
            ble = data["ble"]
            paper = data.get("paper") or {}
            notify = ble.get("notifyCharUuid")
            chunk_size = int(ble.get("chunkSize", 20))
            chunk_delay = int(ble.get("chunkDelay", 80))
            if chunk_size <= 0:
                raise ValueError(f"chunkSize must be positive, got {chunk_size}")
            if chunk_delay < 0:
                raise ValueError(f"chunkDelay must not be negative, got {chunk_delay}")
            return cls(
                id=data["id"],
                name=data["name"],
                protocol=Protocol(data.get("protocol", "unknown")),
                ble=BleParams(
                    service_uuid=normalize(ble["serviceUuid"]),
                    write_char_uuid=normalize(ble["writeCharUuid"]),
                    notify_char_uuid=normalize(notify) if notify else None,
                    chunk_size=chunk_size,
                    chunk_delay=chunk_delay,
                    mtu=int(ble.get("mtu", 23)),
                ),
                paper=PaperSize(
                    width_px=int(paper.get("widthPx", 384)),
                    width_mm=int(paper.get("widthMm", 58)),
                ),
                variants=tuple(data.get("variants") or ()),
                notes=data.get("notes"),
                device_name_pattern=data.get("deviceNamePattern"),
                priority=int(data.get("priority", 0)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            profile_id = data.get("id", "?") if isinstance(data, dict) else "?"
            raise ProfileError(f"Invalid profile '{profile_id}': {e}") from e

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "protocol": self.protocol.value,
            "ble": {
                "serviceUuid": self.ble.service_uuid,
                "writeCharUuid": self.ble.write_char_uuid,
                "notifyCharUuid": self.ble.notify_char_uuid,
                "chunkSize": self.ble.chunk_size,
                "chunkDelay": self.ble.chunk_delay,
                "mtu": self.ble.mtu,
            },
            "paper": {"widthPx": self.paper.width_px, "widthMm": self.paper.width_mm},
        }
        if self.device_name_pattern:
            data["deviceNamePattern"] = self.device_name_pattern
        if self.variants:
            data["variants"] = list(self.variants)
        if self.notes:
            data["notes"] = self.notes
        if self.priority:
            data["priority"] = self.priority
        return data


@dataclass(frozen=True)
class ProfileDatabase:
    """Versioned, ordered collection of profiles keyed by id."""

    version: int
    profiles: dict

    @classmethod
    def empty(cls) -> "ProfileDatabase":
        return cls(version=1, profiles={})

    @classmethod
    def from_dict(cls, data: dict) -> "ProfileDatabase":
        if not isinstance(data, dict) or "version" not in data or "profiles" not in data:
            raise ProfileError("Invalid profile database: expected 'version' and 'profiles'")
        if not isinstance(data["profiles"], dict):
            raise ProfileError("Invalid profile database: 'profiles' must be an object keyed by id")
        profiles = {}
        for key, raw in data["profiles"].items():
            profile = Profile.from_dict(raw)
            if profile.id != key:
                logger.debug("Profile key %s differs from id %s", key, profile.id)
            profiles[profile.id] = profile
        try:
            version = int(data["version"])
        except (TypeError, ValueError) as e:
            raise ProfileError(f"Invalid profile database version: {data['version']!r}") from e
        return cls(version=version, profiles=profiles)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "profiles": {pid: p.to_dict() for pid, p in self.profiles.items()},
        }

    def with_profile(self, profile: Profile) -> "ProfileDatabase":
        """Return a copy with ``profile`` added (or replaced)."""
        profiles = dict(self.profiles)
        profiles[profile.id] = profile
        return ProfileDatabase(version=self.version, profiles=profiles)

    def get(self, profile_id: str) -> Optional[Profile]:
        return self.profiles.get(profile_id)

    def __iter__(self):
        return iter(self.profiles.values())

    def __len__(self) -> int:
        return len(self.profiles)


def match_all(service_uuids: Iterable[str], db: ProfileDatabase) -> list:
    """
    Return every profile whose service UUID is among ``service_uuids``.

    Results are in database order. Callers wanting a single profile should
    use primary_profile().
    """
    wanted = {normalize(u) for u in service_uuids}
    return [p for p in db if normalize(p.ble.service_uuid) in wanted]


def primary_profile(matches: list) -> Optional[Profile]:
    """Pick the primary profile: highest priority, then database order."""
    if not matches:
        return None
    best = matches[0]
    for profile in matches[1:]:
        if profile.priority > best.priority:
            best = profile
    return best


def profile_id_for(device_name: str) -> str:
    """Derive a profile id from a device name."""
    return re.sub(r"[^a-z0-9]", "_", device_name.lower())[:24]


def new_community_profile(
    device_name: str,
    snapshot: GattSnapshot,
    protocol: Protocol = Protocol.UNKNOWN,
    write_char_uuid: Optional[str] = None,
    paper_width_mm: int = 58,
    notes: str = "Auto-discovered. Protocol unknown.",
) -> Profile:
    """Build a new profile for an unmatched device from its GATT snapshot."""
    writable = snapshot.writable()
    notifiable = snapshot.notifiable()
    if write_char_uuid is None:
        write_char_uuid = writable[0].uuid if writable else ""

    return Profile(
        id=profile_id_for(device_name),
        name=f"{device_name} (community)",
        protocol=protocol,
        ble=BleParams(
            service_uuid=snapshot.services[0] if snapshot.services else "",
            write_char_uuid=normalize(write_char_uuid) if write_char_uuid else "",
            notify_char_uuid=notifiable[0].uuid if notifiable else None,
            chunk_size=20,
            chunk_delay=80,
            mtu=23,
        ),
        paper=PaperSize(width_px=384 if paper_width_mm <= 58 else 576, width_mm=paper_width_mm),
        notes=notes,
        device_name_pattern=device_name,
    )
