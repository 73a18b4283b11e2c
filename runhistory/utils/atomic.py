"""Atomic replacement of the JSON history document.

The JSON run store rewrites its whole document on every append, so a crash
mid-write must leave the previous document intact.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

from runhistory.utils.logging import get_logger

logger = get_logger("utils.atomic")


class AtomicWriteError(Exception):
    """The history document could not be replaced."""

    def __init__(self, path: Path, cause: BaseException) -> None:
        super().__init__(f"Failed to replace {path}: {cause}")
        self.path = path
        self.cause = cause


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Iterator[IO[str]]:
    """
    Yield a text handle whose contents replace ``path`` on a clean exit.

    The data goes to a sibling temp file, is flushed to disk and then
    renamed over the target. On any error the temp file is removed and the
    target is left as it was.

    Raises:
        AtomicWriteError: If writing or renaming fails
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Same directory, so the rename never crosses filesystems
        fd, name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        logger.error("history_write_failed", path=str(path), error=str(e))
        raise AtomicWriteError(path, e) from e
    temp_path = Path(name)

    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        temp_path.replace(path)
    except Exception as e:
        logger.error("history_write_failed", path=str(path), error=str(e))
        temp_path.unlink(missing_ok=True)
        raise AtomicWriteError(path, e) from e

    logger.debug("history_written", path=str(path))


def atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Serialize ``data`` as JSON and atomically replace ``path`` with it."""
    with atomic_write(path) as handle:
        json.dump(data, handle, indent=indent, default=str)
