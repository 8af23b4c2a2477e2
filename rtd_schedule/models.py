from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum, IntEnum
import logging
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class DayType(IntEnum):
    """Service day. The values are the remote site's serviceType numbers."""

    SATURDAY = 1
    SUNDAY_HOLIDAY = 2
    WEEKDAY = 3


class Direction(str, Enum):
    """Travel direction of a route"""

    NORTH = "N"
    SOUTH = "S"
    EAST = "E"
    WEST = "W"
    CLOCKWISE = "C"
    COUNTER_CLOCKWISE = "A"
    LOOP = "L"
    UNSPECIFIED = "U"  # Never sent to the remote site

    @classmethod
    def from_code(cls, code: str) -> "Direction":
        """Look up a direction by its code; an empty code is Unspecified."""
        code = (code or "").strip().upper()
        if not code:
            return cls.UNSPECIFIED
        return cls(code)

    @classmethod
    def parse_list(cls, directions: str) -> List["Direction"]:
        """Split a hyphen-joined directions string such as "N-S"."""
        return [cls.from_code(part) for part in directions.split("-") if part.strip()]


class FetchKind(str, Enum):
    ROUTE_CATALOG = "route_catalog"
    TIMETABLE = "timetable"


class Departure(NamedTuple):
    when: time
    route: str = ""  # Subroute label (e.g. "BX"), empty when the route has none


# stop name -> departures sorted by time of day
Timetable = Dict[str, List[Departure]]


@dataclass
class Route:
    name: str
    key: str
    directions: str = ""


@dataclass(frozen=True)
class FetchTarget:
    """Identity of a fetch. At most one job may be outstanding per target."""

    kind: FetchKind
    route: Optional[str] = None
    day: Optional[DayType] = None
    direction: Optional[Direction] = None

    @classmethod
    def route_catalog(cls) -> "FetchTarget":
        return cls(FetchKind.ROUTE_CATALOG)

    @classmethod
    def timetable(cls, route: str, day: DayType, direction: Direction) -> "FetchTarget":
        return cls(FetchKind.TIMETABLE, route, day, direction)

    def __str__(self) -> str:
        if self.kind is FetchKind.ROUTE_CATALOG:
            return "route catalog"
        return f"timetable {self.route}/{self.day.name}/{self.direction.name}"


@dataclass
class FetchJob:
    target: FetchTarget
    url: str
    pending_queries: Set[str] = field(default_factory=set)
    data: bytearray = field(default_factory=bytearray)
    handle: Any = None


TIME_FORMATS = ("%H:%M", "%I:%M%p", "%I:%M %p")
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%B %d, %Y", "%b %d, %Y")


def parse_time(text: str) -> Optional[time]:
    """Parse a timetable cell such as "13:05", "1:05 PM" or RTD's "1:05p"."""
    text = (text or "").strip().upper()
    if not text:
        return None
    if text[-1] in ("A", "P"):
        text += "M"
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def parse_date(text: str) -> Optional[date]:
    text = (text or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _to_departure(entry: Any) -> Optional[Departure]:
    if isinstance(entry, dict):
        raw_time, label = entry.get("time"), entry.get("route") or ""
    elif isinstance(entry, (list, tuple)) and entry:
        raw_time = entry[0]
        label = entry[1] if len(entry) > 1 and entry[1] else ""
    else:
        return None
    when = raw_time if isinstance(raw_time, time) else parse_time(str(raw_time))
    if when is None:
        return None
    return Departure(when, str(label))


class ParsedSchedule(BaseModel):
    """Normalised output of the schedule page parser

    Examples:
        {"validAsOf": "08/23/2009", "directions": "N-S",
         "stops": {"Boulder Transit Center": [{"time": "5:32a", "route": "BX"}]}}
    """

    model_config = ConfigDict(populate_by_name=True)

    valid_as_of: Optional[date] = Field(None, alias="validAsOf")
    directions: str = ""
    stops: Dict[str, List[Departure]] = Field(default_factory=dict)

    @field_validator("valid_as_of", mode="before")
    @classmethod
    def parse_valid_as_of(cls, value: Any) -> Optional[date]:
        if value is None or isinstance(value, date):
            return value
        parsed = parse_date(str(value))
        if parsed is None and str(value).strip():
            logger.warning(f"Unrecognised valid-as-of date: {value!r}")
        return parsed

    @field_validator("directions", mode="before")
    @classmethod
    def normalise_directions(cls, value: Any) -> str:
        return str(value or "").strip().upper()

    @field_validator("stops", mode="before")
    @classmethod
    def normalise_stops(cls, value: Any) -> Dict[str, List[Tuple[time, str]]]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("stops must map stop names to departures")
        stops = {}
        for stop_name, entries in value.items():
            departures = [d for d in map(_to_departure, entries or []) if d is not None]
            departures.sort(key=lambda d: d.when)
            stops[str(stop_name).strip()] = departures
        return stops

    @property
    def is_empty(self) -> bool:
        return self.valid_as_of is None and not self.directions and not self.stops
