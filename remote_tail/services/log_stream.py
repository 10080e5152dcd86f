"""Follow a remote log file over SSH in a background thread."""

from __future__ import annotations

import logging
import shlex
import socket
import threading
import time
from collections import deque
from contextlib import suppress
from enum import Enum, auto
from typing import Callable, Deque, Optional, Tuple

import paramiko

from ..config import DEFAULT_CONFIG, EngineConfig
from ..credentials import Credentials
from ..errors import CommandRejected, ErrorKind, RemoteTailError
from ..events import EventKind, LineEvent, TailEvent
from ..reassembler import LineReassembler
from ..state.registry import SessionRegistry, TailTarget
from .ssh import SSHConnector, SSHSession

_LOGGER = logging.getLogger(__name__)

EventSink = Callable[[TailEvent], None]


class TailState(Enum):
    PENDING = auto()
    CONNECTING = auto()
    AUTHENTICATING = auto()
    EXECUTING = auto()
    STREAMING = auto()
    DRAINING = auto()
    TERMINATED = auto()


class TerminationReason(Enum):
    CANCELLED = auto()
    EOF = auto()
    ERROR = auto()


_REASON_KINDS = {
    TerminationReason.CANCELLED: ErrorKind.CANCELLED,
    TerminationReason.EOF: ErrorKind.EOF,
}


def build_follow_command(path: str, backlog_lines: int) -> str:
    return f"tail -n {int(backlog_lines)} -F -- {shlex.quote(path)}"


class TailSession:
    """Stream one remote file line by line until EOF, error or cancellation.

    The session's registry entry is its cancellation flag: it is checked once
    per poll cycle and the loop exits as soon as the entry is gone or owned by
    a newer session. Every run ends with exactly one terminal event.
    """

    def __init__(
        self,
        credentials: Credentials,
        target: TailTarget,
        registry: SessionRegistry,
        emit: EventSink,
        *,
        connector: Optional[SSHConnector] = None,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> None:
        if target.endpoint != credentials.endpoint:
            raise ValueError("Tail target endpoint does not match the credentials")
        self._credentials = credentials
        self._target = target
        self._registry = registry
        self._emit = emit
        self._connector = connector or SSHConnector(timeout=config.connect_timeout)
        self._config = config
        self._thread: Optional[threading.Thread] = None
        self._stderr: Deque[str] = deque(maxlen=5)
        self.state = TailState.PENDING
        self.reason: Optional[TerminationReason] = None
        self.error: Optional[RemoteTailError] = None
        self.lines_emitted = 0

    @property
    def target(self) -> TailTarget:
        return self._target

    @property
    def command(self) -> str:
        return build_follow_command(self._target.remote_path, self._config.tail_lines)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self.run,
            name=f"remote-tail-{self._target.endpoint}",
            daemon=True,
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop thread; returns True once it has finished."""

        if self._thread is None:
            return self.state is TailState.TERMINATED
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> TerminationReason:
        try:
            session, channel = self._establish()
        except RemoteTailError as exc:
            _LOGGER.warning("Tail setup for %s failed: %s", self._describe(), exc)
            return self._fail_setup(exc)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Unexpected failure setting up tail of %s", self._describe())
            return self._fail_setup(RemoteTailError(f"Unexpected failure: {exc}"))

        try:
            if not self._still_active():
                reason, error = TerminationReason.CANCELLED, None
            else:
                _LOGGER.info("Streaming %s", self._describe())
                self._send(EventKind.CONNECTED)
                reason, error = self._stream(channel)
        finally:
            with suppress(Exception):
                channel.close()
            with suppress(Exception):
                session.close()

        self._release()
        self.error = error
        self._terminate(reason)
        if error is not None:
            _LOGGER.warning("Tail of %s ended with error: %s", self._describe(), error)
            self._send(EventKind.ERROR, message=error.message, error_kind=error.kind)
        else:
            _LOGGER.info("Tail of %s ended (%s)", self._describe(), reason.name.lower())
        self._send(
            EventKind.DISCONNECTED,
            error_kind=_REASON_KINDS.get(reason),
            terminal=True,
        )
        return reason

    # Setup -----------------------------------------------------------------------------

    def _fail_setup(self, error: RemoteTailError) -> TerminationReason:
        self._release()
        self.error = error
        self._terminate(TerminationReason.ERROR)
        self._send(EventKind.ERROR, message=error.message, error_kind=error.kind, terminal=True)
        return TerminationReason.ERROR

    def _establish(self) -> Tuple[SSHSession, paramiko.Channel]:
        self.state = TailState.CONNECTING
        transport = self._connector.open_transport(self._credentials.endpoint)
        self.state = TailState.AUTHENTICATING
        session = self._connector.authenticate(transport, self._credentials)
        self.state = TailState.EXECUTING
        try:
            channel = session.open_command(self.command)
        except RemoteTailError:
            session.close()
            raise
        return session, channel

    # Streaming -------------------------------------------------------------------------

    def _stream(self, channel: paramiko.Channel) -> Tuple[TerminationReason, Optional[RemoteTailError]]:
        self.state = TailState.STREAMING
        reassembler = LineReassembler(max_line_bytes=self._config.max_line_bytes)
        channel.settimeout(0.0)

        while True:
            if not self._still_active():
                return TerminationReason.CANCELLED, None
            try:
                chunk = channel.recv(self._config.chunk_size)
            except socket.timeout:
                # Nothing buffered yet.
                self._drain_stderr(channel)
                time.sleep(self._config.poll_interval)
                continue
            except (paramiko.SSHException, OSError) as exc:
                return TerminationReason.ERROR, CommandRejected(f"Reading from remote stream failed: {exc}")

            if not chunk:
                self.state = TailState.DRAINING
                final = reassembler.flush()
                if final is not None:
                    self._send_line(final)
                error = self._exit_error(channel)
                if error is not None:
                    return TerminationReason.ERROR, error
                return TerminationReason.EOF, None

            for line in reassembler.feed(chunk):
                self._send_line(line)

    def _drain_stderr(self, channel: paramiko.Channel) -> None:
        while channel.recv_stderr_ready():
            data = channel.recv_stderr(1024)
            if not data:
                return
            message = data.decode("utf-8", errors="replace").strip()
            if message:
                self._stderr.append(message)
                _LOGGER.warning("Remote stderr from %s: %s", self._describe(), message)

    def _wait_exit_status(self, channel: paramiko.Channel) -> bool:
        """Poll for the exit status, which servers may send after EOF."""

        deadline = time.monotonic() + self._config.exit_status_wait
        while not channel.exit_status_ready():
            if time.monotonic() >= deadline:
                return False
            time.sleep(self._config.poll_interval)
        return True

    def _exit_error(self, channel: paramiko.Channel) -> Optional[RemoteTailError]:
        if not self._wait_exit_status(channel):
            _LOGGER.debug("No exit status from %s after EOF", self._describe())
            return None
        status = channel.recv_exit_status()
        if status in (0, -1):
            return None
        self._drain_stderr(channel)
        detail = self._stderr[-1] if self._stderr else "no error output"
        return CommandRejected(f"tail exited with status {status}: {detail}")

    # Helpers ---------------------------------------------------------------------------

    def _still_active(self) -> bool:
        return self._registry.is_active(self._target.endpoint, self._target.session_id)

    def _release(self) -> None:
        self._registry.unregister(self._target.endpoint, session_id=self._target.session_id)

    def _terminate(self, reason: TerminationReason) -> None:
        self.state = TailState.TERMINATED
        self.reason = reason

    def _send_line(self, content: str) -> None:
        line = LineEvent(content=content, source_path=self._target.remote_path)
        self.lines_emitted += 1
        self._emit(
            TailEvent(
                kind=EventKind.DATA,
                path=self._target.remote_path,
                endpoint=self._target.endpoint,
                line=line,
                timestamp=line.timestamp,
            )
        )

    def _send(
        self,
        kind: EventKind,
        *,
        message: str = "",
        error_kind: Optional[ErrorKind] = None,
        terminal: bool = False,
    ) -> None:
        self._emit(
            TailEvent(
                kind=kind,
                path=self._target.remote_path,
                endpoint=self._target.endpoint,
                message=message,
                is_terminal=terminal,
                error_kind=error_kind,
            )
        )

    def _describe(self) -> str:
        return f"{self._target.remote_path} on {self._target.endpoint}"
