"""
GATT snapshot model.

A snapshot is captured once after connecting and is read-only for the rest
of the session. Property names follow bleak ("write-without-response", ...).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .uuids import normalize

WRITE_PROPERTIES = frozenset({"write", "write-without-response"})
NOTIFY_PROPERTIES = frozenset({"notify", "indicate"})

# Device Information Service (0x180A) characteristics read during identify
DEVICE_INFO_CHARS = {
    normalize("2a29"): "manufacturer",
    normalize("2a24"): "model",
    normalize("2a26"): "firmware",
    normalize("2a25"): "serial",
}


@dataclass(frozen=True)
class Characteristic:
    """A GATT characteristic and its declared properties."""

    uuid: str
    properties: frozenset

    @classmethod
    def create(cls, uuid: str, properties: Iterable[str]) -> "Characteristic":
        return cls(uuid=normalize(uuid), properties=frozenset(properties))

    @property
    def writable(self) -> bool:
        return bool(self.properties & WRITE_PROPERTIES)

    @property
    def notifiable(self) -> bool:
        return bool(self.properties & NOTIFY_PROPERTIES)

    def to_dict(self) -> dict:
        return {"uuid": self.uuid, "properties": sorted(self.properties)}


@dataclass(frozen=True)
class GattSnapshot:
    """Services and characteristics of one connected device."""

    services: tuple
    characteristics: tuple

    @classmethod
    def create(
        cls,
        services: Iterable[str],
        characteristics: Iterable[Characteristic],
    ) -> "GattSnapshot":
        return cls(
            services=tuple(normalize(s) for s in services),
            characteristics=tuple(characteristics),
        )

    @classmethod
    def from_bleak(cls, services) -> "GattSnapshot":
        """Build a snapshot from a bleak ``BleakGATTServiceCollection``."""
        service_uuids = []
        chars = []
        for service in services:
            service_uuids.append(service.uuid)
            for char in service.characteristics:
                chars.append(Characteristic.create(char.uuid, char.properties))
        return cls.create(service_uuids, chars)

    def find(self, uuid: str) -> Optional[Characteristic]:
        """Find a characteristic by UUID (any spelling)."""
        target = normalize(uuid)
        for char in self.characteristics:
            if char.uuid == target:
                return char
        return None

    def writable(self) -> list:
        return [c for c in self.characteristics if c.writable]

    def notifiable(self) -> list:
        return [c for c in self.characteristics if c.notifiable]

    def device_info_chars(self) -> list:
        return [c for c in self.characteristics if c.uuid in DEVICE_INFO_CHARS]


def decode_device_info(value: bytes) -> Optional[str]:
    """Decode a Device Information string value, dropping NUL padding."""
    text = bytes(value).decode("utf-8", errors="replace").replace("\0", "").strip()
    return text or None
