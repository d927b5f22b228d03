"""Atomic file replacement helpers for the persisted database layout.

A reader that loads a database directory must never observe a half-written
file, so every write goes to a temporary sibling first and is moved into
place with ``os.replace`` (atomic on POSIX and Windows when source and
target share a filesystem).
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterator


@contextlib.contextmanager
def atomic_path(target: Path) -> Iterator[Path]:
    """Yield a temporary path next to *target*; move it over *target* on success.

    If the body raises, the temporary file is removed and *target* is left
    untouched.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_write_json(target: Path, data: Any) -> None:
    """Serialize *data* as UTF-8 JSON and atomically replace *target*."""
    with atomic_path(target) as tmp_path:
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=2)
            handle.flush()
            os.fsync(handle.fileno())


def read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
