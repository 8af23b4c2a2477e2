"""Map calendar dates to RTD service days."""

from datetime import date

from .models import DayType

MONDAY, THURSDAY, SATURDAY, SUNDAY = 0, 3, 5, 6

DAY_NAMES = {
    "weekday": DayType.WEEKDAY,
    "saturday": DayType.SATURDAY,
    "sunday": DayType.SUNDAY_HOLIDAY,
    "holiday": DayType.SUNDAY_HOLIDAY,
}


def is_holiday(day: date) -> bool:
    """Holidays on which RTD runs its Sunday service."""
    weekday = day.weekday()

    # New Year's Day
    if day.month == 1 and day.day == 1:
        return True

    # Memorial Day: last Monday in May
    if day.month == 5 and weekday == MONDAY and day.day > 24:
        return True

    # Independence Day
    if day.month == 7 and day.day == 4:
        return True

    # Labor Day: first Monday in September
    if day.month == 9 and weekday == MONDAY and day.day < 8:
        return True

    # Thanksgiving Day: 4th Thursday in November
    if day.month == 11 and weekday == THURSDAY and 21 < day.day <= 28:
        return True

    # Christmas Day
    if day.month == 12 and day.day == 25:
        return True

    return False


def classify(day: date) -> DayType:
    # A holiday wins even when it falls on a Saturday
    if day.weekday() == SUNDAY or is_holiday(day):
        return DayType.SUNDAY_HOLIDAY
    if day.weekday() == SATURDAY:
        return DayType.SATURDAY
    return DayType.WEEKDAY


def parse_day(name: str) -> DayType:
    """Parse a day name from a query; anything unrecognised means Weekday."""
    return DAY_NAMES.get((name or "").strip().lower(), DayType.WEEKDAY)


def day_for(name: str, today: date) -> DayType:
    """Resolve a query's day component, where "Today" (or nothing) means classify(today)."""
    if not name or name.strip().lower() == "today":
        return classify(today)
    return parse_day(name)
