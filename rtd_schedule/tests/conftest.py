import json
import os
import tempfile
from datetime import date

# Keep logs written during the tests out of the working tree
os.environ.setdefault("PROJECT_ROOT", tempfile.mkdtemp(prefix="rtd_schedule_tests_"))

import pytest

from rtd_schedule.coordinator import FetchCoordinator
from rtd_schedule.models import Route
from rtd_schedule.route_catalog import RouteCatalogStore
from rtd_schedule.schedule_store import ScheduleStore
from rtd_schedule.validity import ValidityTracker

CACHE_VERSION = 3
VALID_AS_OF = date(2021, 8, 23)
WEDNESDAY = date(2021, 11, 24)

ROUTE_MENU = b"""
var routeMenu = [
  {text:"B", url:"/schedules/getSchedule.action?routeId=B"},
  {text:"15", url:"/schedules/getSchedule.action?routeId=15"},
  {text:"Boulder Hop", url:"/schedules/getSchedule.action?routeId=HOP"}
];
"""


def page(valid_as_of="2021-08-23", directions="", stops=None) -> bytes:
    """A schedule page as understood by the fake parser below."""
    return json.dumps(
        {
            "validAsOf": valid_as_of,
            "directions": directions,
            "stops": stops if stops is not None else {"Union Station": [{"time": "5:32a"}, {"time": "6:10p"}]},
        }
    ).encode("utf-8")


def fake_parse_schedule(data: bytes) -> dict:
    return json.loads(data) if data else {}


class FakeFetch:
    def __init__(self, url, on_data, on_complete):
        self.url = url
        self.on_data = on_data
        self.on_complete = on_complete
        self.done = False

    def succeed(self, body: bytes, chunk_size: int = 16):
        for i in range(0, len(body), chunk_size):
            self.on_data(body[i:i + chunk_size])
        self.done = True
        self.on_complete(None)

    def fail(self, error: Exception = None):
        self.done = True
        self.on_complete(error or ConnectionError("connection reset"))


class FakeTransport:
    """Records dispatched fetches; the test decides when and how they complete."""

    def __init__(self):
        self.fetches = []

    def dispatch(self, url, on_data, on_complete):
        fetch = FakeFetch(url, on_data, on_complete)
        self.fetches.append(fetch)
        return fetch

    @property
    def outstanding(self):
        return [f for f in self.fetches if not f.done]

    def last(self) -> FakeFetch:
        return self.fetches[-1]


class Clock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def route_store(cache_dir):
    return RouteCatalogStore(cache_dir, version=CACHE_VERSION)


@pytest.fixture
def schedule_store(cache_dir):
    return ScheduleStore(cache_dir, version=CACHE_VERSION)


@pytest.fixture
def validity(cache_dir):
    return ValidityTracker(cache_dir, version=CACHE_VERSION)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return Clock(WEDNESDAY)


@pytest.fixture
def delivered():
    """Collects (query, result) pairs published to subscribers."""
    return []


@pytest.fixture
def subscriber(delivered):
    """The callback the coordinator fixture subscribes with."""

    def record(query, result):
        delivered.append((query, result))

    return record


@pytest.fixture
def coordinator(transport, route_store, schedule_store, validity, clock, subscriber):
    coordinator = FetchCoordinator(
        transport,
        fake_parse_schedule,
        route_store=route_store,
        schedule_store=schedule_store,
        validity=validity,
        today=clock,
    )
    coordinator.subscribe(subscriber)
    return coordinator


@pytest.fixture
def ready(coordinator, route_store, validity, clock):
    """A coordinator whose routes are cached and whose schedules were confirmed today."""
    route_store.save(
        {
            "B": Route("B", "routeId=B"),
            "15": Route("15", "routeId=15"),
        }
    )
    validity.observe_valid_as_of(VALID_AS_OF)
    validity.record_check(clock.today)
    return coordinator
