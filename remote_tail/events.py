"""Outbound events delivered to the presentation layer."""

from __future__ import annotations

import queue
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .credentials import Endpoint
from .errors import ErrorKind


def _now() -> int:
    return int(time.time())


class EventKind(Enum):
    CONNECTED = "ssh-log-connected"
    DATA = "ssh-log-data"
    ERROR = "ssh-log-error"
    DISCONNECTED = "ssh-log-disconnected"
    MONITOR_STOPPED = "ssh-log-monitor-stopped"


@dataclass(slots=True, frozen=True)
class LineEvent:
    """One complete line read from a tailed file."""

    content: str
    source_path: str
    timestamp: int = field(default_factory=_now)
    is_terminal: bool = False
    error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class TailEvent:
    kind: EventKind
    path: str
    endpoint: Optional[Endpoint] = None
    message: str = ""
    line: Optional[LineEvent] = None
    is_terminal: bool = False
    error_kind: Optional[ErrorKind] = None
    timestamp: int = field(default_factory=_now)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "event": self.kind.value,
            "path": self.path,
            "terminal": self.is_terminal,
            "timestamp": self.timestamp,
        }
        if self.endpoint is not None:
            payload["host"] = self.endpoint.host
            payload["port"] = self.endpoint.port
        if self.line is not None:
            payload["content"] = self.line.content
        if self.message:
            payload["message"] = self.message
        if self.error_kind is not None:
            payload["error_kind"] = self.error_kind.value
        return payload


class EventChannel:
    """Thread-safe FIFO drained by the presentation layer."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[TailEvent]" = queue.Queue()

    def put(self, event: TailEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[TailEvent]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[TailEvent]:
        events: List[TailEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __len__(self) -> int:
        return self._queue.qsize()
