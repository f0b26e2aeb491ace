"""
BLE connection handling.

Handles Bluetooth Low Energy scanning, connection and characteristic I/O
using the Bleak library.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice

from .errors import ConnectionError, DeviceNotFoundError, TransportError
from .gatt import DEVICE_INFO_CHARS, GattSnapshot, decode_device_info
from .uuids import normalize

logger = logging.getLogger(__name__)

SCAN_TIMEOUT = 20.0
CONNECT_TIMEOUT = 20.0


def signal_label(rssi: int) -> str:
    """Describe signal strength for display."""
    if rssi > -50:
        return "strong"
    if rssi > -70:
        return "good"
    if rssi > -85:
        return "weak"
    return "very weak"


@dataclass
class Advertisement:
    """A named device seen while scanning.

    Attributes:
        name: Advertised local name
        address: Platform-specific identifier for connecting:
            - MAC address (XX:XX:XX:XX:XX:XX) on Linux/Windows
            - UUID on macOS (CoreBluetooth privacy feature)
        rssi: Signal strength in dBm
        service_uuids: Advertised service UUIDs (normalized, often partial)
    """
    name: str
    address: str
    rssi: int
    service_uuids: tuple = ()

    def __str__(self) -> str:
        return f"{self.name} [{self.address}] RSSI: {self.rssi} dBm ({signal_label(self.rssi)})"


class BleakChannel:
    """Channel over one characteristic of a connected BleakClient."""

    # Notifications larger than this are dropped
    MAX_NOTIFICATION_SIZE = 4096

    def __init__(self, client: BleakClient, uuid: str):
        self.client = client
        self.uuid = normalize(uuid)

    async def write(self, data: bytes, response: bool = True) -> None:
        try:
            await self.client.write_gatt_char(self.uuid, data, response=response)
        except Exception as e:
            raise TransportError(f"Write to {self.uuid} failed: {e}") from e

    async def subscribe(self, callback: Callable[[bytes], None]) -> None:
        def _handle(sender: BleakGATTCharacteristic, data: bytearray):
            if len(data) > self.MAX_NOTIFICATION_SIZE:
                return
            callback(bytes(data))

        try:
            await self.client.start_notify(self.uuid, _handle)
        except Exception as e:
            raise TransportError(f"Subscribe to {self.uuid} failed: {e}") from e

    async def read(self) -> bytes:
        try:
            return bytes(await self.client.read_gatt_char(self.uuid))
        except Exception as e:
            raise TransportError(f"Read from {self.uuid} failed: {e}") from e


class BLEConnection:
    """Manages the BLE connection to one printer."""

    def __init__(self):
        self.client: Optional[BleakClient] = None
        self.device: Optional[BLEDevice] = None
        self.snapshot: Optional[GattSnapshot] = None

    @classmethod
    async def scan(cls, timeout: float = SCAN_TIMEOUT) -> list:
        """Scan for named BLE devices, strongest first."""
        found = []
        devices = await BleakScanner.discover(timeout=timeout, return_adv=True)

        for device, adv_data in devices.values():
            name = device.name or adv_data.local_name
            if not name:
                continue
            found.append(Advertisement(
                name=name,
                address=device.address,
                rssi=adv_data.rssi if adv_data.rssi is not None else -100,
                service_uuids=tuple(normalize(u) for u in adv_data.service_uuids or ()),
            ))

        return sorted(found, key=lambda a: a.rssi, reverse=True)

    async def find(self, name: str, timeout: float = SCAN_TIMEOUT) -> BLEDevice:
        """
        Find the first advertising device whose name contains ``name``.

        Raises:
            DeviceNotFoundError: If nothing matched within ``timeout`` seconds
        """
        def _matches(device: BLEDevice, adv_data) -> bool:
            local_name = device.name or adv_data.local_name or ""
            return name in local_name

        device = await BleakScanner.find_device_by_filter(_matches, timeout=timeout)
        if device is None:
            raise DeviceNotFoundError(f'"{name}" not found within {timeout:g}s.')

        self.device = device
        logger.info("Found: %s  (%s)", device.name, device.address)
        return device

    async def connect(self, device: Union[BLEDevice, str]) -> GattSnapshot:
        """
        Connect and capture the GATT snapshot.

        Raises:
            ConnectionError: If connecting or service discovery fails
        """
        self.client = BleakClient(device, timeout=CONNECT_TIMEOUT)
        try:
            await self.client.connect()
            self.snapshot = GattSnapshot.from_bleak(self.client.services)
        except Exception as e:
            self.client = None
            raise ConnectionError(f"Connection failed: {e}") from e
        return self.snapshot

    def channel(self, uuid: str) -> BleakChannel:
        if not self.client:
            raise ConnectionError("Not connected")
        return BleakChannel(self.client, uuid)

    async def read_device_info(self) -> dict:
        """Read Device Information Service strings that are present and readable."""
        info = {}
        if not self.snapshot:
            return info
        for char in self.snapshot.device_info_chars():
            try:
                value = decode_device_info(await self.channel(char.uuid).read())
            except TransportError as e:
                logger.debug("Skipping %s: %s", char.uuid, e)
                continue
            if value:
                info[DEVICE_INFO_CHARS[char.uuid]] = value
        return info

    async def disconnect(self):
        """Disconnect from the printer."""
        if self.client and self.client.is_connected:
            await self.client.disconnect()
            logger.info("Disconnected.")
        self.client = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None and self.client.is_connected
