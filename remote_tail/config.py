"""Configuration defaults for the remote log streaming engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Optional, Tuple

from dotenv import load_dotenv

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "REMOTE_TAIL_"


@dataclass(slots=True)
class EngineConfig:
    """Tunables for connecting, tailing and discovering remote logs."""

    poll_interval: float = 0.05
    connect_timeout: float = 10.0
    command_timeout: float = 30.0
    tail_lines: int = 200
    read_backlog_lines: int = 1000
    chunk_size: int = 4096
    max_line_bytes: Optional[int] = None
    join_timeout: float = 2.0
    exit_status_wait: float = 1.0
    discovery_dirs: Tuple[str, ...] = (
        "/var/log",
        "/var/log/nginx",
        "/var/log/apache2",
        "/var/log/httpd",
        "/var/log/mysql",
        "/var/log/postgresql",
        "/var/log/redis",
        "/var/log/supervisor",
        "/opt/logs",
        "/tmp",
    )
    discovery_patterns: Tuple[str, ...] = ("*.log", "syslog", "messages", "*.out")
    profiles_file: str = field(default_factory=lambda: os.path.join(os.path.expanduser("~"), ".remote_tail_profiles.json"))


def _coerce(name: str, raw: str, current):
    if name == "max_line_bytes":
        return int(raw) if raw.strip().lower() not in ("", "none", "0") else None
    if isinstance(current, tuple):
        return tuple(part.strip() for part in raw.split(",") if part.strip())
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, int):
        return int(raw)
    return raw


def load_config(base: Optional[EngineConfig] = None, *, dotenv_path: Optional[str] = None) -> EngineConfig:
    """Return ``base`` (or the defaults) with ``REMOTE_TAIL_*`` overrides applied.

    A ``.env`` file is loaded first without overriding variables already set.
    Values that fail to parse keep their default and log a warning.
    """

    load_dotenv(dotenv_path, override=False)
    config = base or EngineConfig()
    overrides = {}
    for item in fields(EngineConfig):
        raw = os.getenv(ENV_PREFIX + item.name.upper())
        if raw is None:
            continue
        try:
            overrides[item.name] = _coerce(item.name, raw, getattr(config, item.name))
        except ValueError:
            _LOGGER.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, item.name.upper(), raw)
    if overrides:
        _LOGGER.debug("Config overrides from environment: %s", sorted(overrides))
    return replace(config, **overrides)


DEFAULT_CONFIG = EngineConfig()
