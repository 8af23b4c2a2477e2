"""Track when cached schedules were last confirmed against RTD, and as of which date they are valid."""

from datetime import date
from enum import Enum
import logging
from pathlib import Path
from typing import Optional

from .config import get_config
from .exceptions import CacheMiss
from .storage import read_record, write_record

logger = logging.getLogger(__name__)

VALIDITY_FILE_NAME = "validity.msgpack"


class Observation(str, Enum):
    UNCHANGED = "unchanged"
    FIRST_OBSERVATION = "first_observation"
    CHANGED = "changed"


class ValidityTracker:
    """
    Holds the ValidityState: the last day freshness was confirmed with the
    network, and the upstream-declared valid-as-of date.

    When ``cache_dir`` is given the state survives restarts.
    """

    def __init__(self, cache_dir: Optional[Path] = None, version: Optional[int] = None):
        self.last_checked: Optional[date] = None
        self.valid_as_of: Optional[date] = None
        self.version = version if version is not None else get_config("CACHE_VERSION")
        self.path = Path(cache_dir) / VALIDITY_FILE_NAME if cache_dir else None
        self._load()

    def is_fresh_today(self, today: date) -> bool:
        return self.last_checked == today

    def record_check(self, today: date) -> None:
        if self.last_checked != today:
            logger.info(f"Schedules confirmed fresh for {today}")
        self.last_checked = today
        self._save()

    def observe_valid_as_of(self, valid_as_of: date) -> Observation:
        """Compare a freshly parsed valid-as-of date with the stored one."""
        if self.valid_as_of == valid_as_of:
            return Observation.UNCHANGED

        previous, self.valid_as_of = self.valid_as_of, valid_as_of
        self._save()
        if previous is None:
            logger.info(f"Schedules are valid as of {valid_as_of}")
            return Observation.FIRST_OBSERVATION

        logger.info(f"Schedules changed: valid as of {valid_as_of}, was {previous}")
        return Observation.CHANGED

    def _load(self) -> None:
        if self.path is None:
            return
        try:
            record = read_record(self.path, self.version)
        except CacheMiss:
            return
        try:
            self.last_checked = _from_iso(record.get("last_checked"))
            self.valid_as_of = _from_iso(record.get("valid_as_of"))
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed validity record {self.path}: {e}")
            self.last_checked = self.valid_as_of = None

    def _save(self) -> None:
        if self.path is None:
            return
        write_record(
            self.path,
            self.version,
            {
                "last_checked": self.last_checked.isoformat() if self.last_checked else None,
                "valid_as_of": self.valid_as_of.isoformat() if self.valid_as_of else None,
            },
        )


def _from_iso(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None
