"""Error taxonomy shared by the connector, the tail loop and the reader."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    UNREACHABLE = "unreachable"
    HANDSHAKE_FAILED = "handshake_failed"
    AUTH_REJECTED = "auth_rejected"
    COMMAND_REJECTED = "command_rejected"
    TRANSIENT_WOULD_BLOCK = "transient_would_block"
    DECODE_ERROR = "decode_error"
    CANCELLED = "cancelled"
    EOF = "eof"
    NO_ACTIVE_SESSION = "no_active_session"


class RemoteTailError(Exception):
    """Base class for every failure surfaced by remote_tail."""

    kind: ErrorKind = ErrorKind.COMMAND_REJECTED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConnectError(RemoteTailError):
    """Raised while establishing an authenticated SSH session."""


class Unreachable(ConnectError):
    kind = ErrorKind.UNREACHABLE


class HandshakeFailed(ConnectError):
    kind = ErrorKind.HANDSHAKE_FAILED


class AuthRejected(ConnectError):
    kind = ErrorKind.AUTH_REJECTED


class CommandRejected(RemoteTailError):
    kind = ErrorKind.COMMAND_REJECTED


class DecodeError(RemoteTailError):
    kind = ErrorKind.DECODE_ERROR


class NoActiveSession(RemoteTailError):
    kind = ErrorKind.NO_ACTIVE_SESSION
