"""Exceptions raised by the schedule cache."""


class ScheduleError(Exception):
    """Base class for all schedule cache errors."""


class CacheMiss(ScheduleError):
    """No usable persisted record: absent, unreadable, wrong version or stale."""


class InvalidQueryError(ScheduleError, ValueError):
    """The query string does not name anything this cache can answer."""


class FetchError(ScheduleError):
    """A remote fetch did not complete successfully."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url
