"""Query names understood by the coordinator.

    Routes                                   sorted list of route names
    Directions/<route>                       the route's directions, e.g. "N-S"
    Schedule/<route>[/<day>[/<direction>]]   stop name -> departures

``<day>`` is Today (the default), Weekday, Saturday, Sunday or Holiday.
``<direction>`` is a direction code (N, S, E, W, C, A, L); omitted means
unspecified.
"""

from dataclasses import dataclass
from typing import Union

from .exceptions import InvalidQueryError
from .models import Direction

ROUTES = "Routes"
DIRECTIONS = "Directions"
SCHEDULE = "Schedule"


@dataclass(frozen=True)
class RouteListQuery:
    pass


@dataclass(frozen=True)
class DirectionsQuery:
    route: str


@dataclass(frozen=True)
class ScheduleQuery:
    route: str
    day: str = "Today"
    direction: Direction = Direction.UNSPECIFIED


ParsedQuery = Union[RouteListQuery, DirectionsQuery, ScheduleQuery]


def parse_query(query: str) -> ParsedQuery:
    parts = query.split("/")
    kind = parts[0]

    if kind == ROUTES and len(parts) == 1:
        return RouteListQuery()

    if kind == DIRECTIONS and len(parts) == 2 and parts[1]:
        return DirectionsQuery(parts[1])

    if kind == SCHEDULE and 2 <= len(parts) <= 4 and parts[1]:
        day = parts[2] if len(parts) > 2 and parts[2] else "Today"
        try:
            direction = Direction.from_code(parts[3]) if len(parts) > 3 else Direction.UNSPECIFIED
        except ValueError:
            raise InvalidQueryError(f"Unknown direction in query {query!r}")
        return ScheduleQuery(parts[1], day, direction)

    raise InvalidQueryError(f"Unrecognised query {query!r}")


def routes_query() -> str:
    return ROUTES


def directions_query(route: str) -> str:
    return f"{DIRECTIONS}/{route}"


def schedule_query(route: str, day: str = "Today", direction: Direction = Direction.UNSPECIFIED) -> str:
    if direction is Direction.UNSPECIFIED:
        return f"{SCHEDULE}/{route}/{day}"
    return f"{SCHEDULE}/{route}/{day}/{direction.value}"
