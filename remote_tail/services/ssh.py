"""SSH helpers for opening authenticated sessions to remote log hosts."""

from __future__ import annotations

import functools
import logging
import os
import socket
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Type

try:  # pragma: no cover - optional dependency guard
    import paramiko
except ImportError as exc:  # pragma: no cover - fail fast with guidance
    raise RuntimeError(
        "paramiko is required for SSH operations. Install it via 'pip install paramiko'."
    ) from exc

from ..credentials import Credentials, Endpoint, KeyAuth, PasswordAuth
from ..errors import AuthRejected, CommandRejected, HandshakeFailed, Unreachable

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
_READ_CHUNK = 32768
_IDLE_WAIT = 0.01

# Tried in order; DSA is gone from current paramiko releases.
_KEY_CLASSES: Sequence[Type[paramiko.PKey]] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


@dataclass(slots=True)
class SSHCommandResult:
    """Response from executing a remote command to completion."""

    stdout: bytes
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def __bool__(self) -> bool:  # pragma: no cover - simple alias
        return self.ok


def load_private_key(path: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Load a private key file, trying each supported key type."""

    path = os.path.expanduser(path)
    if not os.path.isfile(path):
        raise AuthRejected(f"Private key not found: {path}")

    last_error: Optional[Exception] = None
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key_file(path, password=passphrase or None)
        except paramiko.PasswordRequiredException as exc:
            raise AuthRejected(f"Private key {path} is encrypted; a passphrase is required") from exc
        except (paramiko.SSHException, ValueError, OSError) as exc:
            last_error = exc
    raise AuthRejected(f"Unable to load private key {path}: {last_error}")


@functools.singledispatch
def authenticate(auth, transport: paramiko.Transport, username: str) -> None:
    """Authenticate ``transport`` with the given credential variant."""

    raise AuthRejected(f"Unsupported authentication method: {type(auth).__name__}")


@authenticate.register
def _(auth: PasswordAuth, transport: paramiko.Transport, username: str) -> None:
    transport.auth_password(username, auth.password)


@authenticate.register
def _(auth: KeyAuth, transport: paramiko.Transport, username: str) -> None:
    key = load_private_key(auth.private_key_path, auth.passphrase)
    transport.auth_publickey(username, key)


def _collect_output(channel: paramiko.Channel, timeout: Optional[float]) -> Tuple[bytes, str]:
    """Read stdout and stderr side by side until the command has exited."""

    stdout, stderr = bytearray(), bytearray()
    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        # exit-status follows all data, so the buffers are complete once it is seen.
        finished = channel.exit_status_ready()
        busy = False
        if channel.recv_ready():
            stdout += channel.recv(_READ_CHUNK)
            busy = True
        if channel.recv_stderr_ready():
            stderr += channel.recv_stderr(_READ_CHUNK)
            busy = True
        if busy:
            continue
        if finished:
            return bytes(stdout), stderr.decode("utf-8", errors="replace")
        if deadline is not None and time.monotonic() >= deadline:
            raise socket.timeout("timed out")
        time.sleep(_IDLE_WAIT)


class SSHSession:
    """An authenticated transport able to run remote commands."""

    def __init__(self, credentials: Credentials, transport: paramiko.Transport, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._credentials = credentials
        self._transport: Optional[paramiko.Transport] = transport
        self._timeout = timeout

    @property
    def endpoint(self) -> Endpoint:
        return self._credentials.endpoint

    @property
    def is_active(self) -> bool:
        return self._transport is not None and self._transport.is_active()

    def open_command(self, command: str) -> paramiko.Channel:
        """Start ``command`` on a fresh channel and return the channel."""

        if self._transport is None:
            raise CommandRejected("SSH session is closed")
        _LOGGER.debug("Running remote command on %s: %s", self.endpoint, command)
        try:
            channel = self._transport.open_session(timeout=self._timeout)
        except (paramiko.SSHException, EOFError, OSError) as exc:
            raise CommandRejected(f"Unable to open SSH channel: {exc}") from exc
        try:
            channel.exec_command(command)
        except (paramiko.SSHException, EOFError, OSError) as exc:
            with suppress(Exception):
                channel.close()
            raise CommandRejected(f"Remote command could not start: {exc}") from exc
        return channel

    def execute(self, command: str, timeout: Optional[float] = None) -> SSHCommandResult:
        channel = self.open_command(command)
        try:
            stdout, stderr = _collect_output(channel, timeout)
            exit_code = channel.recv_exit_status()
        except socket.timeout as exc:
            raise CommandRejected(f"Remote command timed out after {timeout}s: {command}") from exc
        except (paramiko.SSHException, OSError) as exc:
            raise CommandRejected(f"Remote command failed: {exc}") from exc
        finally:
            with suppress(Exception):
                channel.close()
        _LOGGER.debug("Command exit code %s", exit_code)
        return SSHCommandResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def __enter__(self) -> "SSHSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SSHConnector:
    """Opens a socket, negotiates SSH and authenticates. No retries."""

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    def open_transport(self, endpoint: Endpoint) -> paramiko.Transport:
        _LOGGER.debug("Connecting to %s", endpoint)
        try:
            sock = socket.create_connection((endpoint.host, endpoint.port), timeout=self._timeout)
        except OSError as exc:
            raise Unreachable(f"Unable to reach {endpoint}: {exc}") from exc

        try:
            transport = paramiko.Transport(sock)
        except (paramiko.SSHException, OSError) as exc:
            sock.close()
            raise HandshakeFailed(f"SSH handshake with {endpoint} failed: {exc}") from exc
        transport.banner_timeout = self._timeout
        try:
            transport.start_client(timeout=self._timeout)
        except (paramiko.SSHException, EOFError, OSError) as exc:
            transport.close()
            raise HandshakeFailed(f"SSH handshake with {endpoint} failed: {exc}") from exc
        return transport

    def authenticate(self, transport: paramiko.Transport, credentials: Credentials) -> SSHSession:
        _LOGGER.debug("Authenticating %s", credentials.describe())
        try:
            authenticate(credentials.auth, transport, credentials.username)
        except AuthRejected:
            transport.close()
            raise
        except (paramiko.SSHException, EOFError, OSError) as exc:
            transport.close()
            raise AuthRejected(f"SSH authentication failed for {credentials.describe()}: {exc}") from exc
        if not transport.is_authenticated():
            transport.close()
            raise AuthRejected(f"SSH authentication failed for {credentials.describe()}")
        return SSHSession(credentials, transport, timeout=self._timeout)

    def connect(self, credentials: Credentials) -> SSHSession:
        transport = self.open_transport(credentials.endpoint)
        return self.authenticate(transport, credentials)
