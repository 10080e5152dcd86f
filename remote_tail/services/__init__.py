"""SSH transport, tail loop, one-shot reader and local file access."""

from .log_stream import TailSession, TailState, TerminationReason
from .reader import LogCandidate, RemoteFileContent, RemoteLogReader
from .ssh import SSHCommandResult, SSHConnector, SSHSession

__all__ = [
    "LogCandidate",
    "RemoteFileContent",
    "RemoteLogReader",
    "SSHCommandResult",
    "SSHConnector",
    "SSHSession",
    "TailSession",
    "TailState",
    "TerminationReason",
]
