"""File helpers for settings and project persistence."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

__all__ = ["read_text", "write_text", "read_json", "write_json"]


def read_text(path: Path | str, *, encoding: str = "utf-8") -> str:
    """Read a text file, dropping a UTF-8 byte order mark if present."""

    text = Path(path).read_text(encoding=encoding)
    return text[1:] if text.startswith("\ufeff") else text


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Write text to ``path``, replacing the file in a single rename when atomic.

    A reader never observes a partially written file; on failure the previous
    contents are left in place.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        with target.open("w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        return target

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def read_json(path: Path | str) -> Any:
    return json.loads(read_text(path))


def write_json(path: Path | str, payload: Any, *, indent: int | None = 2) -> Path:
    body = json.dumps(payload, indent=indent, ensure_ascii=False)
    return write_text(path, body + "\n")
