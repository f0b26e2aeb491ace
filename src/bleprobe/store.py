"""
Profile database storage.

The working database lives in the user's config directory. It is seeded
from the packaged profiles on first use and refreshed from a remote copy
when it is older than the TTL (or on request).
"""

import json
import logging
import os
import time
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Optional

import requests

from .errors import ProfileError
from .profiles import ProfileDatabase

logger = logging.getLogger(__name__)

# Refresh from remote at most once a week
PROFILES_TTL_SECONDS = 7 * 24 * 60 * 60
FETCH_TIMEOUT_SECONDS = 5.0

DEFAULT_PROFILES_URL = (
    "https://raw.githubusercontent.com/your-org/ble-printer-probe/main/profiles.json"
)


def config_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "bleprobe"


def default_profiles_path() -> Path:
    return config_dir() / "profiles.json"


def profiles_url() -> str:
    return os.environ.get("BLEPROBE_PROFILES_URL", DEFAULT_PROFILES_URL)


@dataclass(frozen=True)
class UpdateResult:
    db: ProfileDatabase
    updated: bool = False
    message: Optional[str] = None


def load_packaged_profiles() -> ProfileDatabase:
    """Load the profiles shipped with the package."""
    text = resources.files("bleprobe.data").joinpath("profiles.json").read_text(encoding="utf-8")
    return ProfileDatabase.from_dict(json.loads(text))


def load_profiles(path: Optional[Path] = None) -> ProfileDatabase:
    """
    Load the profile database.

    Args:
        path: Database file (default: user config directory)

    Returns:
        The stored database, or the packaged one if no file exists yet

    Raises:
        ProfileError: If the file exists but cannot be parsed
    """
    path = path or default_profiles_path()
    if not path.exists():
        return load_packaged_profiles()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ProfileError(f"Could not read profiles from {path}: {e}") from e
    return ProfileDatabase.from_dict(data)


def save_profiles(db: ProfileDatabase, path: Optional[Path] = None) -> Path:
    path = path or default_profiles_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(db.to_dict(), indent=2), encoding="utf-8")
    return path


def fetch_remote_profiles(
    url: Optional[str] = None,
    timeout: float = FETCH_TIMEOUT_SECONDS,
) -> ProfileDatabase:
    """
    Download the shared profile database.

    Raises:
        ProfileError: On network errors, non-200 responses or invalid content
    """
    url = url or profiles_url()
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise ProfileError(f"Could not fetch profiles: {e}") from e

    if response.status_code != 200:
        raise ProfileError(f"Could not fetch profiles: HTTP {response.status_code}")

    try:
        data = response.json()
    except ValueError as e:
        raise ProfileError(f"Invalid profile database from {url}: {e}") from e
    if not isinstance(data, dict) or not data.get("version") or not data.get("profiles"):
        raise ProfileError("Invalid profile database format")
    return ProfileDatabase.from_dict(data)


def _age_seconds(path: Path) -> float:
    try:
        return time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return float("inf")


def load_profiles_maybe_update(
    path: Optional[Path] = None,
    force: bool = False,
    ttl_seconds: int = PROFILES_TTL_SECONDS,
    url: Optional[str] = None,
) -> UpdateResult:
    """
    Load profiles, refreshing from the remote copy when stale or forced.

    The remote database replaces the local one when it has a higher version
    or more profiles. Fetch failures fall back to the local database.
    """
    path = path or default_profiles_path()
    local = load_profiles(path)

    if not force and _age_seconds(path) < ttl_seconds:
        return UpdateResult(local)

    try:
        remote = fetch_remote_profiles(url)
    except ProfileError as e:
        if force:
            logger.warning("Could not fetch remote profiles: %s", e)
        else:
            logger.debug("Using local profiles: %s", e)
        return UpdateResult(local)

    if remote.version > local.version or len(remote) > len(local):
        save_profiles(remote, path)
        tag = "Updated" if force else "Auto-updated"
        return UpdateResult(
            remote,
            updated=True,
            message=f"Profiles {tag}: v{remote.version}, {len(remote)} profile(s)",
        )

    message = None
    if force:
        message = f"Profiles already current (v{local.version}, {len(local)} profile(s))"
    return UpdateResult(local, message=message)
