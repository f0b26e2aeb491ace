"""
High-level printer probe.

Ties together scanning, connection, profile matching, test printing and
interactive discovery for one device.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .connection import SCAN_TIMEOUT, BLEConnection
from .errors import ConnectionError, NotFoundError, TransportError
from .gatt import GattSnapshot
from .profiles import Profile, ProfileDatabase, match_all, primary_profile
from .report import DiscoveryReport, config_snippet
from .session import DiscoverySession, Oracle
from .stages import build_protocol_test
from .transport import run_stages

logger = logging.getLogger(__name__)


@dataclass
class Identification:
    """What is known about a device right after connecting."""

    device_name: str
    ble_id: str
    snapshot: GattSnapshot
    device_info: dict
    matches: list

    @property
    def primary(self) -> Optional[Profile]:
        return primary_profile(self.matches)

    def snippet(self) -> dict:
        return config_snippet(
            self.device_name, self.ble_id, self.snapshot, self.matches, self.primary
        )


class PrinterProbe:
    """
    Identify and probe one BLE printer.

    Usage:
        probe = PrinterProbe(db)
        try:
            ident = await probe.identify("Printer")
            report = await probe.discover(oracle)
        finally:
            await probe.disconnect()
    """

    def __init__(self, db: ProfileDatabase, connection: Optional[BLEConnection] = None):
        self.db = db
        self.connection = connection or BLEConnection()
        self.identification: Optional[Identification] = None

    @classmethod
    async def scan(cls, timeout: float = SCAN_TIMEOUT) -> list:
        """Scan for named BLE devices."""
        return await BLEConnection.scan(timeout)

    async def identify(self, name: str, timeout: float = SCAN_TIMEOUT) -> Identification:
        """
        Find a device by name, connect, and match it against the database.

        Raises:
            DeviceNotFoundError: If the device is not seen within ``timeout``
            ConnectionError: If connecting or enumerating fails
        """
        device = await self.connection.find(name, timeout=timeout)
        snapshot = await self.connection.connect(device)
        device_info = await self.connection.read_device_info()
        matches = match_all(snapshot.services, self.db)

        self.identification = Identification(
            device_name=device.name or name,
            ble_id=device.address,
            snapshot=snapshot,
            device_info=device_info,
            matches=matches,
        )
        return self.identification

    def _require_identified(self) -> Identification:
        if self.identification is None or not self.connection.is_connected:
            raise ConnectionError("Not connected to a device; call identify() first")
        return self.identification

    async def test_print(self, profile: Profile, label: str = "BLE PROBE"):
        """
        Send the protocol test print for ``profile``.

        Raises:
            NotFoundError: If the profile's write characteristic is absent
            TransportError: If the write fails
        """
        ident = self._require_identified()
        write_char = ident.snapshot.find(profile.ble.write_char_uuid)
        if write_char is None:
            raise NotFoundError(
                f"Write characteristic {profile.ble.write_char_uuid} not found on device."
            )

        notify_uuid = profile.ble.notify_char_uuid
        if notify_uuid and ident.snapshot.find(notify_uuid):
            try:
                await self.connection.channel(notify_uuid).subscribe(
                    lambda data: logger.debug("Notify: %s", data.hex())
                )
            except TransportError as e:
                logger.warning("Could not subscribe to %s: %s", notify_uuid, e)

        logger.info("Sending test print via [%s] (%s)...", profile.id, profile.protocol.value)
        stages = build_protocol_test(
            profile.protocol,
            label=label,
            chunk_size=profile.ble.chunk_size,
            chunk_delay_ms=profile.ble.chunk_delay,
        )
        await run_stages(self.connection.channel(write_char.uuid), stages)

    async def discover(self, oracle: Oracle, **session_options) -> DiscoveryReport:
        """Run an interactive discovery session on the connected device."""
        ident = self._require_identified()
        session = DiscoverySession(
            device_name=ident.device_name,
            ble_id=ident.ble_id,
            snapshot=ident.snapshot,
            matches=ident.matches,
            open_channel=self.connection.channel,
            device_info=ident.device_info,
            **session_options,
        )
        return await session.run(oracle)

    async def disconnect(self):
        await self.connection.disconnect()
