"""Root conftest: shared fixtures and process-wide state cleanup."""

import pytest

from remote_tail.config import EngineConfig
from remote_tail.credentials import Credentials, Endpoint, PasswordAuth
from remote_tail.state import app_state


@pytest.fixture
def endpoint():
    return Endpoint(host="logs.example.com", port=2222)


@pytest.fixture
def credentials(endpoint):
    return Credentials(endpoint=endpoint, username="deploy", auth=PasswordAuth(password="hunter2"))


@pytest.fixture
def fast_config(tmp_path):
    return EngineConfig(
        poll_interval=0.01,
        connect_timeout=1.0,
        command_timeout=1.0,
        join_timeout=2.0,
        discovery_dirs=("/var/log", "/var/log/nginx", "/opt/logs"),
        profiles_file=str(tmp_path / "profiles.json"),
    )


@pytest.fixture(autouse=True)
def _reset_app_state():
    """Drop the process-wide state after each test."""
    yield
    app_state.reset_app_state(timeout=1.0)
