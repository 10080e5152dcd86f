"""Read a log file from the local disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import Optional

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class LocalFileContent:
    content: str
    file_name: str
    line_count: int


def read_local_file(path: str, max_lines: Optional[int] = None) -> LocalFileContent:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r", encoding="utf-8") as handle:
        lines = handle if max_lines is None else islice(handle, max_lines)
        collected = [line.rstrip("\n") for line in lines]

    content = "".join(f"{line}\n" for line in collected)
    _LOGGER.info("Read %d lines from %s", len(collected), file_path)
    return LocalFileContent(content=content, file_name=file_path.name or "unknown", line_count=len(collected))
