"""JSON file helpers shared by the list-file store and the snapshot cache.

Writes go to a uniquely named temporary file in the destination directory
and are renamed over the target, so readers see either the complete old
file or the complete new one.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any
from uuid import uuid4

import orjson


logger = logging.getLogger(__name__)

_DUMP_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS | orjson.OPT_APPEND_NEWLINE


class CacheCorruptedError(RuntimeError):
    """Raised when a persisted cache file exists but cannot be decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Config cache failure: decoding {path} failed: {reason}")
        self.path = path


def serialize_json(payload: Any) -> bytes:
    return orjson.dumps(payload, option=_DUMP_OPTIONS)


def load_json_file(path: Path) -> Any | None:
    """Return the decoded document, or None when the file does not exist."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as err:
        logger.critical("Config cache failure: decoding %s failed: %s", path, err)
        raise CacheCorruptedError(path, str(err)) from err


def file_mtime(path: Path) -> float | None:
    """Return the modification time of ``path`` or None when it is absent."""
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


def atomic_write_json(path: Path, payload: Any) -> None:
    """Serialize ``payload`` and atomically replace ``path`` with it.

    On any failure the temporary file is removed, the previous version of
    ``path`` stays in place and the error propagates.
    """
    serialized = serialize_json(payload)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    try:
        tmp_path.write_bytes(serialized)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
