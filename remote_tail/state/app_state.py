"""Central application state shared by every front end."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..config import EngineConfig, load_config
from ..credentials import Credentials, Endpoint
from ..errors import ErrorKind, NoActiveSession, RemoteTailError
from ..events import EventChannel, EventKind, TailEvent
from ..services.local_file import LocalFileContent, read_local_file
from ..services.log_stream import TailSession
from ..services.reader import LogCandidate, RemoteFileContent, RemoteLogReader
from ..services.ssh import SSHConnector
from .registry import SessionRegistry, TailTarget

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ConnectionStatus:
    connected: bool
    message: str
    error_kind: Optional[ErrorKind] = None


class AppState:
    """Owns the registry, the connector and every running tail session."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        registry: Optional[SessionRegistry] = None,
        connector: Optional[SSHConnector] = None,
        events: Optional[EventChannel] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.registry = registry or SessionRegistry()
        self.events = events or EventChannel()
        self._connector = connector or SSHConnector(timeout=self.config.connect_timeout)
        self._reader = RemoteLogReader(self._connector, self.config)
        self._sessions: Dict[str, TailSession] = {}
        self._lock = threading.Lock()

    # Synchronous requests ------------------------------------------------------------

    def connect_test(self, credentials: Credentials) -> ConnectionStatus:
        _LOGGER.info("Testing SSH connection to %s", credentials.describe())
        try:
            session = self._connector.connect(credentials)
        except RemoteTailError as exc:
            _LOGGER.warning("Connection test failed: %s", exc)
            return ConnectionStatus(connected=False, message=exc.message, error_kind=exc.kind)
        session.close()
        return ConnectionStatus(connected=True, message=f"Connected to {credentials.endpoint}")

    def read_now(self, credentials: Credentials, remote_path: str, *, follow: bool = False) -> RemoteFileContent:
        return self._reader.read_all(credentials, remote_path, follow=follow)

    def discover_logs(self, credentials: Credentials) -> List[LogCandidate]:
        return self._reader.discover_logs(credentials)

    def read_local(self, path: str, max_lines: Optional[int] = None) -> LocalFileContent:
        return read_local_file(path, max_lines)

    # Tailing ---------------------------------------------------------------------------

    def start_tail(self, credentials: Credentials, remote_path: str) -> TailTarget:
        """Register ``remote_path`` for the endpoint and start its loop thread.

        Any session already tailing on the same endpoint is evicted; its loop
        notices on its next poll and shuts down on its own.
        """

        if not remote_path:
            raise ValueError("Remote path cannot be empty.")
        target = TailTarget(endpoint=credentials.endpoint, remote_path=remote_path)
        session = TailSession(
            credentials,
            target,
            self.registry,
            self.events.put,
            connector=self._connector,
            config=self.config,
        )
        evicted = self.registry.register(target)
        if evicted is not None:
            _LOGGER.info("Evicting tail of %s on %s", evicted, target.endpoint)
        _LOGGER.info("Starting tail of %s on %s", remote_path, credentials.describe())

        with self._lock:
            self._prune_finished()
            self._sessions[target.session_id] = session
        session.start()
        return target

    def stop_tail(self, endpoint: Optional[Endpoint] = None, remote_path: Optional[str] = None) -> List[TailTarget]:
        """Stop tailing by endpoint or by remote path.

        Only the registry is touched; each loop observes the removal and sends
        its own disconnected event. Raises ``NoActiveSession`` if nothing matched.
        """

        if endpoint is None and not remote_path:
            raise ValueError("stop_tail needs an endpoint or a remote path")

        if endpoint is not None:
            target = self.registry.get(endpoint)
            candidates = [target] if target is not None else []
        else:
            candidates = self.registry.find_by_path(remote_path or "")

        stopped: List[TailTarget] = []
        for target in candidates:
            if self.registry.unregister(target.endpoint, session_id=target.session_id) is None:
                continue
            _LOGGER.info("Stopping tail of %s on %s", target.remote_path, target.endpoint)
            self.events.put(
                TailEvent(kind=EventKind.MONITOR_STOPPED, path=target.remote_path, endpoint=target.endpoint)
            )
            stopped.append(target)

        if not stopped:
            key = str(endpoint) if endpoint is not None else remote_path
            raise NoActiveSession(f"No active tail session for {key}")
        return stopped

    def session_for(self, target: TailTarget) -> Optional[TailSession]:
        with self._lock:
            return self._sessions.get(target.session_id)

    def active_targets(self) -> List[TailTarget]:
        return self.registry.active_targets()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Cancel every tail and wait briefly for the loops to exit."""

        self.registry.clear()
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        wait = self.config.join_timeout if timeout is None else timeout
        for session in sessions:
            if not session.join(wait):
                _LOGGER.warning("Tail of %s did not stop within %.1fs", session.target.remote_path, wait)

    def _prune_finished(self) -> None:
        finished = [key for key, session in self._sessions.items() if session.reason is not None]
        for key in finished:
            del self._sessions[key]


_STATE: Optional[AppState] = None
_STATE_LOCK = threading.Lock()


def init_app_state(config: Optional[EngineConfig] = None, **kwargs) -> AppState:
    """Create the process-wide state. Call once at startup."""

    global _STATE
    with _STATE_LOCK:
        if _STATE is not None:
            raise RuntimeError("Application state is already initialised")
        _STATE = AppState(config or load_config(), **kwargs)
        return _STATE


def get_app_state() -> AppState:
    state = _STATE
    if state is None:
        raise RuntimeError("Application state has not been initialised; call init_app_state() first")
    return state


def reset_app_state(timeout: Optional[float] = None) -> None:
    global _STATE
    with _STATE_LOCK:
        state, _STATE = _STATE, None
    if state is not None:
        state.shutdown(timeout)
