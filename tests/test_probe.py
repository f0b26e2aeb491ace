"""Tests for the high-level PrinterProbe."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from bleprobe.errors import ConnectionError, NotFoundError
from bleprobe.probe import PrinterProbe
from bleprobe.profiles import BleParams, Profile, Protocol
from bleprobe.stages import d1_test_stages
from bleprobe.store import load_packaged_profiles
from bleprobe.uuids import normalize


@pytest.fixture
def connection(d1_device):
    """BLEConnection stand-in backed by the fake D1 device."""
    device = MagicMock()
    device.name = "LuckP_D1"
    device.address = "AA:BB:CC:DD:EE:FF"

    conn = MagicMock()
    conn.find = AsyncMock(return_value=device)
    conn.connect = AsyncMock(return_value=d1_device.snapshot)
    conn.read_device_info = AsyncMock(return_value={"model": "D1"})
    conn.disconnect = AsyncMock()
    conn.channel = d1_device.open_channel
    conn.is_connected = True
    return conn


class TestIdentify:
    """Test connecting and matching profiles."""

    @pytest.mark.asyncio
    async def test_matches_shared_service(self, connection):
        """Test a D1 device matches both ff00 profiles, D1 primary."""
        probe = PrinterProbe(load_packaged_profiles(), connection)

        ident = await probe.identify("D1", timeout=1)

        assert ident.device_name == "LuckP_D1"
        assert ident.device_info == {"model": "D1"}
        assert [m.id for m in ident.matches] == ["d1", "p31s"]
        assert ident.primary.id == "d1"
        snippet = ident.snippet()
        assert snippet["printer"]["ble"]["activeProfile"] == "d1"
        assert snippet["_allProfiles"] == ["d1", "p31s"]


class TestTestPrint:
    """Test sending a profile's test print."""

    @pytest.mark.asyncio
    async def test_requires_identify(self, connection):
        """Test printing before identify fails."""
        probe = PrinterProbe(load_packaged_profiles(), connection)
        with pytest.raises(ConnectionError):
            await probe.test_print(load_packaged_profiles().get("d1"))

    @pytest.mark.asyncio
    async def test_sends_d1_stages(self, connection, d1_device, no_sleep):
        """Test the D1 test print goes to ff02 after subscribing to ff01."""
        db = load_packaged_profiles()
        probe = PrinterProbe(db, connection)
        await probe.identify("D1")

        await probe.test_print(db.get("d1"))

        assert d1_device["ff02"].data == b"".join(s.payload for s in d1_test_stages())
        assert d1_device["ff01"].subscribed

    @pytest.mark.asyncio
    async def test_missing_write_char(self, connection):
        """Test a profile whose write char is absent raises NotFoundError."""
        probe = PrinterProbe(load_packaged_profiles(), connection)
        await probe.identify("D1")
        profile = Profile(
            id="other",
            name="Other",
            protocol=Protocol.ESCPOS,
            ble=BleParams(service_uuid=normalize("ff00"), write_char_uuid=normalize("2af1")),
        )

        with pytest.raises(NotFoundError):
            await probe.test_print(profile)


class TestDiscover:
    """Test running discovery through the probe."""

    @pytest.mark.asyncio
    async def test_discover(self, connection, oracle_factory, no_sleep):
        """Test discovery trials every matched profile on the shared char."""
        probe = PrinterProbe(load_packaged_profiles(), connection)
        await probe.identify("D1")
        oracle = oracle_factory(answers=[True, False])

        report = await probe.discover(oracle, flush_pause=0, notify_settle=0)

        assert report.profile_matches == ("d1", "p31s")
        assert report.device_info == {"model": "D1"}
        assert [c.protocol for c in report.confirmed] == [Protocol.D1]
        # The printed result on ff02 is kept despite the later "no"
        assert report.probing[normalize("ff02")].profile_id == "d1"
        assert len(oracle.questions) == 2

    @pytest.mark.asyncio
    async def test_disconnect(self, connection):
        """Test disconnect is delegated to the connection."""
        probe = PrinterProbe(load_packaged_profiles(), connection)
        await probe.disconnect()
        connection.disconnect.assert_awaited_once()
