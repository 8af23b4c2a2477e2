"""Cache and fetch coordination for RTD Denver schedules"""

from .coordinator import PENDING, FetchCoordinator
from .day_types import classify
from .models import DayType, Departure, Direction, Route
from .queries import directions_query, routes_query, schedule_query
from .transport import HttpTransport

__all__ = [
    "PENDING",
    "FetchCoordinator",
    "HttpTransport",
    "classify",
    "DayType",
    "Departure",
    "Direction",
    "Route",
    "directions_query",
    "routes_query",
    "schedule_query",
]
