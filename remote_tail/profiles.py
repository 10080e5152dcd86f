"""Saved connection profiles. Secrets are never written to disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .config import load_config
from .credentials import AuthMethod, Credentials, Endpoint, KeyAuth, PasswordAuth

_LOGGER = logging.getLogger(__name__)


def _profiles_path(path: Optional[str]) -> Path:
    return Path(path or load_config().profiles_file)


def load_profiles(path: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    try:
        raw = _profiles_path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        _LOGGER.warning("Could not read profiles: %s", exc)
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        _LOGGER.warning("Ignoring malformed profiles file %s", _profiles_path(path))
        return {}
    if isinstance(data, dict):
        return {name: entry for name, entry in data.items() if isinstance(entry, dict)}
    return {}


def save_profile(name: str, credentials: Credentials, log_path: str = "", *, path: Optional[str] = None) -> None:
    if not name:
        raise ValueError("Profile name cannot be empty.")
    data = load_profiles(path)
    entry = credentials.to_public_dict()
    if log_path:
        entry["log_path"] = log_path
    data[name] = entry
    target = _profiles_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, indent=2), encoding="utf-8")


def delete_profile(name: str, *, path: Optional[str] = None) -> bool:
    data = load_profiles(path)
    if data.pop(name, None) is None:
        return False
    _profiles_path(path).write_text(json.dumps(data, indent=2), encoding="utf-8")
    return True


def profile_credentials(profile: Dict[str, Any], secret: Optional[str] = None) -> Credentials:
    """Rebuild credentials from a stored profile plus the secret supplied now.

    ``secret`` is the password for password profiles and the key passphrase
    for key profiles.
    """

    endpoint = Endpoint(host=str(profile.get("host", "")), port=int(profile.get("port") or 22))
    auth: AuthMethod
    if profile.get("auth_type") == KeyAuth.auth_type:
        auth = KeyAuth(private_key_path=str(profile.get("private_key_path", "")), passphrase=secret or None)
    else:
        auth = PasswordAuth(password=secret or "")
    return Credentials(endpoint=endpoint, username=str(profile.get("username", "")), auth=auth)
