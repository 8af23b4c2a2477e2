"""Persist timetables per (route, day type, direction)."""

import hashlib
import logging
import re
from datetime import date, time
from pathlib import Path
from typing import Optional

from .config import get_config
from .exceptions import CacheMiss
from .models import Departure, DayType, Direction, Timetable
from .storage import delete_record, read_record, write_record

logger = logging.getLogger(__name__)


class ScheduleStore:
    """
    One versioned record per (route, day, direction), stamped with the
    valid-as-of date of the data it holds.

    A record whose version or valid-as-of date does not match is deleted on
    read, so stale data is evicted rather than returned.
    """

    def __init__(self, cache_dir: Optional[Path] = None, version: Optional[int] = None):
        self.cache_dir = Path(cache_dir or get_config("CACHE_DIR")) / "schedules"
        self.version = version if version is not None else get_config("CACHE_VERSION")

    def path_for(self, route: str, day: DayType, direction: Direction) -> Path:
        # Route names are free text; keep file names safe and collision free
        slug = re.sub(r"[^A-Za-z0-9_-]+", "_", route)[:40]
        digest = hashlib.sha1(route.encode("utf-8")).hexdigest()[:8]
        return self.cache_dir / f"{slug}-{digest}_{day.value}_{direction.value}.msgpack"

    def load(self, route: str, day: DayType, direction: Direction, valid_as_of: Optional[date]) -> Timetable:
        """
        Load a timetable that is valid as of ``valid_as_of``.

        Args:
            route: Route name
            day: Service day
            direction: Travel direction (Unspecified is its own entry)
            valid_as_of: The currently authoritative valid-as-of date

        Returns:
            Mapping of stop name to departures sorted by time

        Raises:
            CacheMiss: If there is no entry, or it is of another version or
                valid-as-of date
        """
        path = self.path_for(route, day, direction)
        record = read_record(path, self.version)

        if valid_as_of is None:
            raise CacheMiss("Current valid-as-of date is unknown")

        stored = record.get("valid_as_of")
        current = valid_as_of.isoformat()
        if stored != current:
            logger.info(
                f"Evicting {route}/{day.name}/{direction.name}: valid as of {stored}, current is {current}"
            )
            delete_record(path)
            raise CacheMiss(f"{path} is stale")

        try:
            return {
                stop: [Departure(time.fromisoformat(t), label) for t, label in departures]
                for stop, departures in record["stops"]
            }
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed timetable {path}: {e}")
            delete_record(path)
            raise CacheMiss(f"{path} is malformed") from e

    def save(self, route: str, day: DayType, direction: Direction, valid_as_of: date, data: Timetable) -> None:
        stops = [
            [stop, [[d.when.isoformat(), d.route] for d in sorted(departures, key=lambda d: d.when)]]
            for stop, departures in data.items()
        ]
        path = self.path_for(route, day, direction)
        write_record(path, self.version, {"valid_as_of": valid_as_of.isoformat(), "stops": stops})
        logger.debug(f"Saved {len(stops)} stops for {route}/{day.name}/{direction.name}")

    def invalidate(self, route: str, day: DayType, direction: Direction) -> None:
        delete_record(self.path_for(route, day, direction))

    def clear(self) -> None:
        """Remove every persisted timetable."""
        if not self.cache_dir.exists():
            return
        for path in self.cache_dir.glob("*.msgpack"):
            delete_record(path)
        logger.info(f"Cleared timetable cache in {self.cache_dir}")
