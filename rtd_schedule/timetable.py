from datetime import time
from itertools import chain
from typing import List

from .models import Departure, Timetable


def upcoming_departures(timetable: Timetable, stop: str, after: time, limit: int = 5) -> List[Departure]:
    """
    Next departures from a stop at or after a time of day.

    A timetable covers one nominal service day with no date attached, so once
    the evening departures run out the list wraps around to the first
    departures of the day.

    Args:
        timetable: Mapping of stop name to departures sorted by time
        stop: Stop name
        after: Time of day to start from
        limit: Maximum number of departures to return

    Returns:
        Up to ``limit`` departures, empty if the stop is unknown
    """
    departures = timetable.get(stop, [])
    if limit <= 0 or not departures:
        return []
    later = [d for d in departures if d.when >= after]
    earlier = [d for d in departures if d.when < after]
    return list(chain(later, earlier))[:limit]
