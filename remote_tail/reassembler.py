"""Turn arbitrarily split byte chunks into complete text lines."""

from __future__ import annotations

import logging
from typing import List, Optional

_LOGGER = logging.getLogger(__name__)

LINE_TERMINATOR = b"\n"


class LineReassembler:
    """Accumulate bytes and yield each line once its terminator arrives.

    Lines are decoded as UTF-8 after the terminator is found, so multi-byte
    characters split across chunks decode correctly. A trailing ``\\r`` is
    stripped. Lines that are not valid UTF-8 are dropped and counted in
    ``dropped_lines`` instead of failing the stream.

    ``max_line_bytes`` is off by default. When set, any line longer than the
    cap is dropped whole: the held bytes are discarded as soon as the buffer
    grows past the cap, and everything up to the next terminator is skipped.
    """

    def __init__(self, *, max_line_bytes: Optional[int] = None, encoding: str = "utf-8") -> None:
        if max_line_bytes is not None and max_line_bytes <= 0:
            raise ValueError("max_line_bytes must be positive")
        self._buffer = bytearray()
        self._max_line_bytes = max_line_bytes
        self._encoding = encoding
        self._discarding = False
        self.dropped_lines = 0

    def feed(self, chunk: bytes) -> List[str]:
        lines: List[str] = []
        if not chunk:
            return lines

        if self._discarding:
            index = chunk.find(LINE_TERMINATOR)
            if index == -1:
                return lines
            chunk = chunk[index + 1 :]
            self._discarding = False
            self._drop("over length limit")

        self._buffer.extend(chunk)
        start = 0
        while True:
            index = self._buffer.find(LINE_TERMINATOR, start)
            if index == -1:
                break
            line = self._decode(self._buffer[start:index])
            if line is not None:
                lines.append(line)
            start = index + 1
        if start:
            del self._buffer[:start]

        if self._max_line_bytes is not None and len(self._buffer) > self._max_line_bytes:
            self._buffer.clear()
            self._discarding = True
        return lines

    def remainder(self) -> bytes:
        return bytes(self._buffer)

    def flush(self) -> Optional[str]:
        """Decode and release the unterminated tail, if any."""

        if self._discarding:
            self._discarding = False
            self._drop("over length limit")
            return None
        if not self._buffer:
            return None
        span = bytes(self._buffer)
        self._buffer.clear()
        return self._decode(span)

    def reset(self) -> None:
        self._buffer.clear()
        self._discarding = False

    def _decode(self, span: bytes) -> Optional[str]:
        if span.endswith(b"\r"):
            span = span[:-1]
        if self._max_line_bytes is not None and len(span) > self._max_line_bytes:
            self._drop("over length limit")
            return None
        try:
            return bytes(span).decode(self._encoding)
        except UnicodeDecodeError:
            self._drop("not valid text")
            return None

    def _drop(self, reason: str) -> None:
        self.dropped_lines += 1
        _LOGGER.debug("Dropped line (%s); %d dropped so far", reason, self.dropped_lines)
