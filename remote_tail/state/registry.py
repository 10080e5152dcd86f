"""In-memory registry of active tail sessions, one per endpoint."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..credentials import Endpoint


@dataclass(slots=True, frozen=True)
class TailTarget:
    endpoint: Endpoint
    remote_path: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.time)


class SessionRegistry:
    """Maps an endpoint to the path currently tailed on it.

    Every operation holds the lock. Passing ``session_id`` to ``is_active`` or
    ``unregister`` scopes the call to one particular session, so a loop that
    was evicted sees itself as inactive and cannot remove its successor.
    """

    def __init__(self) -> None:
        self._entries: Dict[Endpoint, TailTarget] = {}
        self._lock = threading.Lock()

    def try_register(self, endpoint: Endpoint, path: str, *, session_id: Optional[str] = None) -> Optional[str]:
        """Insert ``path`` for ``endpoint`` and return the evicted path, if any."""

        extra = {"session_id": session_id} if session_id is not None else {}
        return self.register(TailTarget(endpoint=endpoint, remote_path=path, **extra))

    def register(self, target: TailTarget) -> Optional[str]:
        with self._lock:
            previous = self._entries.get(target.endpoint)
            self._entries[target.endpoint] = target
        return previous.remote_path if previous else None

    def is_active(self, endpoint: Endpoint, session_id: Optional[str] = None) -> bool:
        with self._lock:
            entry = self._entries.get(endpoint)
        if entry is None:
            return False
        return session_id is None or entry.session_id == session_id

    def unregister(self, endpoint: Endpoint, *, session_id: Optional[str] = None) -> Optional[str]:
        """Remove the entry for ``endpoint``; returns the removed path or ``None``."""

        with self._lock:
            entry = self._entries.get(endpoint)
            if entry is None:
                return None
            if session_id is not None and entry.session_id != session_id:
                return None
            del self._entries[endpoint]
        return entry.remote_path

    def get(self, endpoint: Endpoint) -> Optional[TailTarget]:
        with self._lock:
            return self._entries.get(endpoint)

    def find_by_path(self, path: str) -> List[TailTarget]:
        with self._lock:
            return [entry for entry in self._entries.values() if entry.remote_path == path]

    def active_targets(self) -> List[TailTarget]:
        with self._lock:
            return list(self._entries.values())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
