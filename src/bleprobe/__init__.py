"""BLE thermal printer identification and protocol probing."""

__version__ = "0.1.0"

from .connection import Advertisement, BLEConnection, BleakChannel
from .errors import (
    ConnectionError,
    DeviceNotFoundError,
    NotFoundError,
    ProbeError,
    ProfileError,
    ProtocolUnknown,
    SessionStateError,
    TransportError,
)
from .gatt import Characteristic, GattSnapshot
from .probe import Identification, PrinterProbe
from .profiles import (
    BleParams,
    PaperSize,
    Profile,
    ProfileDatabase,
    Protocol,
    match_all,
    primary_profile,
)
from .report import ConfirmedCharacteristic, DiscoveryReport, Outcome, ProbingResult
from .session import DiscoverySession, Phase
from .stages import Stage, build_protocol_test
from .transport import run_stages, send_chunked
from .uuids import normalize

__all__ = [
    "Advertisement",
    "BLEConnection",
    "BleakChannel",
    "ProbeError",
    "TransportError",
    "NotFoundError",
    "DeviceNotFoundError",
    "ConnectionError",
    "ProtocolUnknown",
    "ProfileError",
    "SessionStateError",
    "Characteristic",
    "GattSnapshot",
    "Identification",
    "PrinterProbe",
    "BleParams",
    "PaperSize",
    "Profile",
    "ProfileDatabase",
    "Protocol",
    "match_all",
    "primary_profile",
    "ConfirmedCharacteristic",
    "DiscoveryReport",
    "Outcome",
    "ProbingResult",
    "DiscoverySession",
    "Phase",
    "Stage",
    "build_protocol_test",
    "run_stages",
    "send_chunked",
    "normalize",
]
