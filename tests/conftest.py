"""
Pytest configuration for bleprobe tests.

Provides in-memory channels, a scripted operator and command-line options
for hardware tests.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from bleprobe.connection import BLEConnection
from bleprobe.errors import TransportError
from bleprobe.gatt import Characteristic, GattSnapshot
from bleprobe.uuids import normalize


class FakeChannel:
    """In-memory characteristic that records writes.

    Args:
        uuid: Characteristic UUID
        fail_after: Fail every write once this many writes have succeeded
        fail_when: Fail writes whose data satisfies this predicate
        notify_target: Channel whose subscribers are notified on each write
    """

    def __init__(self, uuid, fail_after=None, fail_when=None, notify_target=None):
        self.uuid = normalize(uuid)
        self.fail_after = fail_after
        self.fail_when = fail_when
        self.notify_target = notify_target
        self.writes = []
        self.callbacks = []
        self.value = b""

    async def write(self, data, response=True):
        if self.fail_after is not None and len(self.writes) >= self.fail_after:
            raise TransportError("simulated write failure")
        if self.fail_when is not None and self.fail_when(bytes(data)):
            raise TransportError("simulated write failure")
        self.writes.append(bytes(data))
        if self.notify_target is not None:
            for callback in self.notify_target.callbacks:
                callback(b"\x01")

    async def subscribe(self, callback):
        self.callbacks.append(callback)

    async def read(self):
        return self.value

    @property
    def data(self) -> bytes:
        return b"".join(self.writes)

    @property
    def subscribed(self) -> bool:
        return bool(self.callbacks)


class FakeDevice:
    """A set of FakeChannels plus the matching GATT snapshot."""

    def __init__(self, services, chars):
        """chars: list of (uuid, properties) tuples."""
        self.snapshot = GattSnapshot.create(
            services, [Characteristic.create(uuid, props) for uuid, props in chars]
        )
        self.channels = {c.uuid: FakeChannel(c.uuid) for c in self.snapshot.characteristics}

    def __getitem__(self, uuid) -> FakeChannel:
        return self.channels[normalize(uuid)]

    def open_channel(self, uuid) -> FakeChannel:
        return self.channels[normalize(uuid)]


class ScriptedOracle:
    """Operator stand-in answering from a script.

    Confirm answers are consumed in order; once the script runs out every
    answer is "no".
    """

    def __init__(self, answers=None, context=None):
        self.answers = list(answers or [])
        self.context = dict(context or {})
        self.questions = []
        self.asked = []

    async def ask(self, question):
        self.asked.append(question)
        return self.context.get(question.key, "")

    async def confirm(self, question):
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else False


@pytest.fixture
def no_sleep():
    """Replace transport delays with an AsyncMock so tests run instantly."""
    with patch("bleprobe.transport.asyncio") as mock_asyncio:
        mock_asyncio.sleep = AsyncMock()
        yield mock_asyncio.sleep


@pytest.fixture
def channel_factory():
    return FakeChannel


@pytest.fixture
def device_factory():
    return FakeDevice


@pytest.fixture
def oracle_factory():
    return ScriptedOracle


@pytest.fixture
def d1_device():
    """A D1-style device: ff00 service, notify ff01, write ff02."""
    return FakeDevice(
        ["ff00"],
        [("ff01", ["notify"]), ("ff02", ["write-without-response"])],
    )


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--address",
        action="store",
        default=None,
        help="Bluetooth address of the printer for hardware tests",
    )


@pytest.fixture
def printer_address(request):
    """Get the printer address from command line."""
    address = request.config.getoption("--address")
    if address is None:
        pytest.skip("No printer address provided (use --address=XX:XX:XX:XX:XX:XX)")
    return address


@pytest_asyncio.fixture
async def connected_printer(printer_address):
    """Provide a connected BLEConnection."""
    connection = BLEConnection()
    try:
        await connection.connect(printer_address)
    except Exception as e:
        pytest.skip(f"Could not connect to printer at {printer_address}: {e}")

    yield connection

    await connection.disconnect()
