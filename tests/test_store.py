"""Tests for profile database storage and remote refresh."""

import json
import os
import time
from unittest.mock import MagicMock

import pytest
import requests

from bleprobe.errors import ProfileError
from bleprobe.profiles import ProfileDatabase
from bleprobe.store import (
    default_profiles_path,
    fetch_remote_profiles,
    load_packaged_profiles,
    load_profiles,
    load_profiles_maybe_update,
    profiles_url,
    save_profiles,
)

REMOTE = {
    "version": 99,
    "profiles": {
        "remote": {
            "id": "remote",
            "name": "Remote printer",
            "protocol": "escpos",
            "ble": {"serviceUuid": "18f0", "writeCharUuid": "2af1"},
        }
    },
}


def response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


@pytest.fixture
def profiles_path(tmp_path):
    return tmp_path / "profiles.json"


class TestPackagedProfiles:
    """Test the profiles shipped with the package."""

    def test_loads(self):
        """Test the packaged database parses."""
        db = load_packaged_profiles()
        assert db.version >= 1
        assert db.get("d1") is not None
        assert db.get("gt01") is not None

    def test_d1_and_p31s_share_service(self):
        """Test the shared ff00 service is represented."""
        db = load_packaged_profiles()
        assert db.get("d1").ble.service_uuid == db.get("p31s").ble.service_uuid
        assert db.get("p31s").is_identification_only


class TestLoadSave:
    """Test reading and writing the local database."""

    def test_missing_file_uses_packaged(self, profiles_path):
        """Test a missing file falls back to the packaged profiles."""
        assert load_profiles(profiles_path) == load_packaged_profiles()

    def test_round_trip(self, profiles_path):
        """Test a saved database loads back unchanged."""
        db = ProfileDatabase.from_dict(REMOTE)
        save_profiles(db, profiles_path)
        assert load_profiles(profiles_path) == db

    def test_creates_parent_directories(self, tmp_path):
        """Test saving creates the config directory."""
        path = tmp_path / "a" / "b" / "profiles.json"
        save_profiles(ProfileDatabase.empty(), path)
        assert path.exists()

    def test_invalid_json(self, profiles_path):
        """Test unreadable files raise ProfileError."""
        profiles_path.write_text("{not json")
        with pytest.raises(ProfileError):
            load_profiles(profiles_path)

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        """Test the default path honours XDG_CONFIG_HOME."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert default_profiles_path() == tmp_path / "bleprobe" / "profiles.json"

    def test_url_override(self, monkeypatch):
        """Test the remote URL can be overridden from the environment."""
        monkeypatch.setenv("BLEPROBE_PROFILES_URL", "https://example.com/p.json")
        assert profiles_url() == "https://example.com/p.json"


class TestFetchRemote:
    """Test downloading the shared database."""

    def test_success(self, mocker):
        """Test a valid response is parsed."""
        get = mocker.patch("bleprobe.store.requests.get", return_value=response(payload=REMOTE))

        db = fetch_remote_profiles("https://example.com/p.json", timeout=2)

        assert db.version == 99
        get.assert_called_once_with("https://example.com/p.json", timeout=2)

    def test_http_error(self, mocker):
        """Test non-200 responses raise ProfileError."""
        mocker.patch("bleprobe.store.requests.get", return_value=response(status_code=404))
        with pytest.raises(ProfileError, match="HTTP 404"):
            fetch_remote_profiles("https://example.com/p.json")

    def test_network_error(self, mocker):
        """Test connection errors raise ProfileError."""
        mocker.patch("bleprobe.store.requests.get", side_effect=requests.ConnectionError("down"))
        with pytest.raises(ProfileError):
            fetch_remote_profiles("https://example.com/p.json")

    def test_invalid_format(self, mocker):
        """Test documents without profiles are rejected."""
        mocker.patch("bleprobe.store.requests.get", return_value=response(payload={"version": 1}))
        with pytest.raises(ProfileError, match="format"):
            fetch_remote_profiles("https://example.com/p.json")

    def test_profile_list_rejected(self, mocker):
        """Test a remote database listing profiles as an array raises ProfileError."""
        payload = {"version": 5, "profiles": [REMOTE["profiles"]["remote"]]}
        mocker.patch("bleprobe.store.requests.get", return_value=response(payload=payload))
        with pytest.raises(ProfileError):
            fetch_remote_profiles("https://example.com/p.json")


class TestMaybeUpdate:
    """Test TTL-based and forced refresh."""

    def test_fresh_file_not_refreshed(self, profiles_path, mocker):
        """Test a recent local database is used without fetching."""
        save_profiles(load_packaged_profiles(), profiles_path)
        get = mocker.patch("bleprobe.store.requests.get")

        result = load_profiles_maybe_update(profiles_path)

        get.assert_not_called()
        assert not result.updated
        assert result.message is None

    def test_stale_file_refreshed(self, profiles_path, mocker):
        """Test a stale database is replaced by a newer remote one."""
        save_profiles(load_packaged_profiles(), profiles_path)
        old = time.time() - 8 * 24 * 60 * 60
        os.utime(profiles_path, (old, old))
        mocker.patch("bleprobe.store.requests.get", return_value=response(payload=REMOTE))

        result = load_profiles_maybe_update(profiles_path)

        assert result.updated
        assert result.db.version == 99
        assert "Auto-updated" in result.message
        assert json.loads(profiles_path.read_text())["version"] == 99

    def test_forced_refresh_already_current(self, profiles_path, mocker):
        """Test forcing with an older remote keeps the local database."""
        save_profiles(load_packaged_profiles(), profiles_path)
        older = {"version": 1, "profiles": {"remote": REMOTE["profiles"]["remote"]}}
        mocker.patch("bleprobe.store.requests.get", return_value=response(payload=older))

        result = load_profiles_maybe_update(profiles_path, force=True)

        assert not result.updated
        assert "already current" in result.message

    def test_fetch_failure_falls_back(self, profiles_path, mocker):
        """Test a failed fetch falls back to the local database."""
        mocker.patch("bleprobe.store.requests.get", side_effect=requests.Timeout("slow"))

        result = load_profiles_maybe_update(profiles_path, force=True)

        assert result.db == load_packaged_profiles()
        assert not result.updated
        assert not profiles_path.exists()

    @pytest.mark.parametrize("payload", [
        {"version": 99, "profiles": [REMOTE["profiles"]["remote"]]},
        {
            "version": 99,
            "profiles": {
                "bad": {
                    "id": "bad",
                    "name": "Bad",
                    "ble": {"serviceUuid": "abcd", "writeCharUuid": "aaaa", "chunkSize": 0},
                }
            },
        },
    ])
    def test_malformed_remote_falls_back(self, profiles_path, mocker, payload):
        """Test a malformed remote database is ignored and the local one kept."""
        mocker.patch("bleprobe.store.requests.get", return_value=response(payload=payload))

        result = load_profiles_maybe_update(profiles_path, force=True)

        assert result.db == load_packaged_profiles()
        assert not result.updated
        assert not profiles_path.exists()
