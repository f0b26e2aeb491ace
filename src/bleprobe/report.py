"""
Discovery results and report formatting.

The report is assembled once at the end of a discovery session and is
not modified afterwards. ``to_dict()`` produces the JSON document users
paste into config files and issue reports.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import quote

from .errors import ProtocolUnknown
from .gatt import GattSnapshot
from .profiles import Profile, Protocol, new_community_profile

ISSUES_URL = "https://github.com/your-org/ble-printer-probe/issues/new"


class Outcome(str, Enum):
    """Result of one probe against one characteristic."""

    PRINTED = "printed"
    NO_RESPONSE = "no_response"
    NOTIFY_ONLY = "notify_only"
    WRITE_ERROR = "write_error"


@dataclass(frozen=True)
class ProbingResult:
    protocol: Protocol
    outcome: Outcome
    profile_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"protocol": self.protocol.value, "result": self.outcome.value}
        if self.profile_id:
            data["profile"] = self.profile_id
        return data


@dataclass(frozen=True)
class ConfirmedCharacteristic:
    """A characteristic where the operator saw the expected effect."""

    uuid: str
    protocol: Protocol

    def to_dict(self) -> dict:
        return {"uuid": self.uuid, "protocol": self.protocol.value}


@dataclass(frozen=True)
class DeviceContext:
    """Operator-supplied details about the printer."""

    model: Optional[str] = None
    brand: Optional[str] = None
    paper_width_mm: int = 58
    app: Optional[str] = None


@dataclass(frozen=True)
class DiscoveryReport:
    device_name: str
    ble_id: str
    device_info: dict
    context: DeviceContext
    profile_matches: tuple
    confirmed: tuple
    capabilities: dict
    services: tuple
    characteristics: tuple
    probing: dict
    skipped_profiles: tuple = field(default=())
    # Every probe in send order; ``probing`` keeps one result per characteristic
    attempts: tuple = field(default=())

    @property
    def protocol_unknown(self) -> bool:
        return not self.confirmed

    def primary_confirmed(self) -> ConfirmedCharacteristic:
        """
        Return the first confirmed characteristic.

        Raises:
            ProtocolUnknown: If probing confirmed nothing
        """
        if not self.confirmed:
            raise ProtocolUnknown(f"No write protocol confirmed for {self.device_name}")
        return self.confirmed[0]

    def to_dict(self) -> dict:
        capabilities = None
        if self.capabilities:
            capabilities = {
                key: value.value if isinstance(value, Outcome) else value
                for key, value in self.capabilities.items()
            }
        return {
            "deviceName": self.device_name,
            "bleId": self.ble_id,
            "deviceInfo": dict(self.device_info) if self.device_info else None,
            "model": self.context.model,
            "brand": self.context.brand,
            "paperWidthMm": self.context.paper_width_mm,
            "app": self.context.app,
            "profileMatches": list(self.profile_matches),
            "confirmedChars": [c.to_dict() for c in self.confirmed] or None,
            "capabilities": capabilities,
            "services": list(self.services),
            "characteristics": [c.to_dict() for c in self.characteristics],
            "probing": {uuid: r.to_dict() for uuid, r in self.probing.items()},
            "attempts": [{"uuid": uuid, **r.to_dict()} for uuid, r in self.attempts],
            "skippedProfiles": list(self.skipped_profiles),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def config_snippet(
    device_name: str,
    ble_id: str,
    snapshot: GattSnapshot,
    matches: list,
    primary: Optional[Profile] = None,
) -> dict:
    """
    Build the config snippet shown after identify.

    Matched devices get a printer config naming the active profile; unmatched
    devices get their raw GATT identity and candidate characteristics.
    """
    if matches:
        primary = primary or matches[0]
        snippet = {
            "printer": {
                "transport": "ble",
                "ble": {"deviceName": device_name, "activeProfile": primary.id},
            }
        }
        if len(matches) > 1:
            snippet["_allProfiles"] = [m.id for m in matches]
            snippet["_note"] = (
                f"Device supports {len(matches)} profiles. Change activeProfile to switch."
            )
        return snippet

    writable = snapshot.writable()
    notifiable = snapshot.notifiable()
    return {
        "deviceName": device_name,
        "bleId": ble_id,
        "services": list(snapshot.services),
        "characteristics": [c.to_dict() for c in snapshot.characteristics],
        "candidateWrite": writable[0].uuid if writable else None,
        "candidateNotify": notifiable[0].uuid if notifiable else None,
    }


def _encode_component(text: str) -> str:
    return quote(text, safe="-_.!~*'()")


def issue_url(device_name: str, snippet: dict) -> str:
    """Build a pre-filled GitHub issue URL for submitting a new printer."""
    title = f"New printer: {device_name}"

    # Short service prefixes are enough to identify the family
    services = " ".join(u[:8] for u in (snippet.get("services") or [])[:4])

    confirmed = " ".join(
        f"{c['protocol']}@{c['uuid'][:8]}" for c in (snippet.get("confirmedChars") or [])
    ) or "none"

    caps = None
    if snippet.get("capabilities"):
        caps = " ".join(k for k, v in snippet["capabilities"].items() if v is True)

    lines = [f"Device: {device_name}"]
    if services:
        lines.append(f"Services: {services}")
    lines.append(f"Confirmed: {confirmed}")
    if caps:
        lines.append(f"Capabilities: {caps}")
    lines += [
        "",
        "Brand: ",
        "Model: ",
        "App: ",
        "Paper retraction before first print (y/n): ",
    ]
    body = "\n".join(lines)

    return f"{ISSUES_URL}?title={_encode_component(title)}&body={_encode_component(body)}"


def profile_from_report(report: DiscoveryReport, snapshot: GattSnapshot) -> Profile:
    """Build a community profile from a finished discovery."""
    if report.protocol_unknown:
        return new_community_profile(
            report.device_name,
            snapshot,
            paper_width_mm=report.context.paper_width_mm,
        )

    confirmed = report.primary_confirmed()
    details = [f"Auto-discovered. Confirmed {confirmed.protocol.value} on {confirmed.uuid}."]
    if report.context.brand:
        details.append(f"Brand: {report.context.brand}.")
    if report.context.model:
        details.append(f"Model: {report.context.model}.")
    return new_community_profile(
        report.device_name,
        snapshot,
        protocol=confirmed.protocol,
        write_char_uuid=confirmed.uuid,
        paper_width_mm=report.context.paper_width_mm,
        notes=" ".join(details),
    )
