"""Versioned msgpack records on disk.

Every record carries the cache version it was written with. A record that
cannot be read, or that was written by another version, is deleted and
reported as a cache miss: it is never partially trusted.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict

import msgpack

from .exceptions import CacheMiss

logger = logging.getLogger(__name__)


def write_record(path: Path, version: int, payload: Dict[str, Any]) -> None:
    """Write a record, replacing any previous one atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    packed = msgpack.packb({"version": version, **payload}, use_bin_type=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "wb") as f:
        f.write(packed)
    os.replace(tmp_path, path)
    logger.debug(f"Wrote {len(packed)} bytes to {path}")


def read_record(path: Path, version: int) -> Dict[str, Any]:
    """Read a record written with ``version``.

    Raises:
        CacheMiss: If the record is absent, unreadable or of another version
    """
    if not path.exists():
        raise CacheMiss(f"{path} does not exist")

    try:
        with open(path, "rb") as f:
            record = msgpack.unpackb(f.read(), raw=False)
    except (OSError, ValueError, msgpack.exceptions.UnpackException) as e:
        logger.warning(f"Discarding unreadable cache record {path}: {e}")
        delete_record(path)
        raise CacheMiss(f"{path} is unreadable") from e

    if not isinstance(record, dict) or record.get("version") != version:
        found = record.get("version") if isinstance(record, dict) else None
        logger.info(f"Discarding cache record {path}: version {found}, expected {version}")
        delete_record(path)
        raise CacheMiss(f"{path} has version {found}")

    return record


def delete_record(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
