"""Read remote log files in one shot and discover candidate log files."""

from __future__ import annotations

import logging
import posixpath
import shlex
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..config import DEFAULT_CONFIG, EngineConfig
from ..credentials import Credentials
from ..errors import CommandRejected, DecodeError, RemoteTailError
from .ssh import SSHConnector, SSHSession

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RemoteFileContent:
    content: str
    file_name: str
    line_count: int


@dataclass(slots=True, frozen=True)
class LogCandidate:
    path: str
    name: str
    is_remote: bool = True


def count_lines(content: str) -> int:
    return len(content.splitlines())


def build_read_command(path: str, *, follow: bool, backlog_lines: int) -> str:
    """``cat`` the file, or take a bounded tail when a follow hint is given."""

    quoted = shlex.quote(path)
    if follow:
        return f"tail -n {int(backlog_lines)} -- {quoted}"
    return f"cat -- {quoted}"


def build_discovery_command(directory: str, patterns: Iterable[str]) -> str:
    names = " -o ".join(f"-name {shlex.quote(pattern)}" for pattern in patterns)
    return f"find {shlex.quote(directory)} -maxdepth 1 -type f \\( {names} \\) 2>/dev/null"


class RemoteLogReader:
    """Synchronous remote reads. Blocks the caller for the whole round trip."""

    def __init__(self, connector: Optional[SSHConnector] = None, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self._config = config
        self._connector = connector or SSHConnector(timeout=config.connect_timeout)

    def read_all(self, credentials: Credentials, remote_path: str, *, follow: bool = False) -> RemoteFileContent:
        if not remote_path:
            raise ValueError("Remote path cannot be empty.")
        command = build_read_command(remote_path, follow=follow, backlog_lines=self._config.read_backlog_lines)
        _LOGGER.info("Reading %s from %s", remote_path, credentials.describe())

        with self._connector.connect(credentials) as session:
            result = session.execute(command, timeout=self._config.command_timeout)

        if not result.ok:
            detail = result.stderr.strip() or "no error output"
            raise CommandRejected(f"Reading {remote_path} failed with exit status {result.exit_code}: {detail}")
        try:
            content = result.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"{remote_path} is not valid UTF-8 (byte {exc.start})") from exc

        return RemoteFileContent(
            content=content,
            file_name=posixpath.basename(remote_path.rstrip("/")) or "unknown",
            line_count=count_lines(content),
        )

    def discover_logs(self, credentials: Credentials) -> List[LogCandidate]:
        """List log files in the configured directories.

        Each directory is searched on its own; a failing search is logged and
        skipped. Connection failures still propagate.
        """

        found: Dict[str, LogCandidate] = {}
        with self._connector.connect(credentials) as session:
            for directory in self._config.discovery_dirs:
                for path in self._search_directory(session, directory):
                    found.setdefault(path, LogCandidate(path=path, name=posixpath.basename(path)))
        _LOGGER.info("Discovered %d log files on %s", len(found), credentials.endpoint)
        return sorted(found.values(), key=lambda candidate: candidate.path)

    def _search_directory(self, session: SSHSession, directory: str) -> List[str]:
        command = build_discovery_command(directory, self._config.discovery_patterns)
        try:
            result = session.execute(command, timeout=self._config.command_timeout)
        except RemoteTailError as exc:
            _LOGGER.debug("Skipping %s: %s", directory, exc)
            return []
        if not result.ok and not result.stdout:
            _LOGGER.debug("Skipping %s: exit status %s", directory, result.exit_code)
            return []
        text = result.stdout.decode("utf-8", errors="replace")
        return [line.strip() for line in text.splitlines() if line.strip()]
