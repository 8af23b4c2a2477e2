"""Tests for the persisted route catalog, timetables and validity state"""

from datetime import date, time

import msgpack
import pytest

from conftest import CACHE_VERSION, VALID_AS_OF
from rtd_schedule.exceptions import CacheMiss
from rtd_schedule.models import DayType, Departure, Direction, Route
from rtd_schedule.route_catalog import RouteCatalogStore, set_directions
from rtd_schedule.schedule_store import ScheduleStore
from rtd_schedule.validity import Observation, ValidityTracker

TIMETABLE = {
    "Boulder Transit Center": [Departure(time(5, 32), "BX"), Departure(time(6, 2), "B")],
    "Union Station": [Departure(time(6, 15), "BX"), Departure(time(23, 59), "B")],
}


def test_route_catalog_round_trip(route_store):
    routes = {"B": Route("B", "routeId=B", "N-S"), "15": Route("15", "routeId=15")}
    route_store.save(routes)

    assert route_store.load() == routes


def test_route_catalog_missing(route_store):
    with pytest.raises(CacheMiss):
        route_store.load()


def test_route_catalog_version_mismatch_is_discarded(cache_dir, route_store):
    RouteCatalogStore(cache_dir, version=CACHE_VERSION - 1).save({"B": Route("B", "routeId=B")})

    with pytest.raises(CacheMiss):
        route_store.load()
    assert not route_store.path.exists()


def test_route_catalog_garbage_is_discarded(route_store):
    route_store.path.parent.mkdir(parents=True)
    route_store.path.write_bytes(b"\xc1 not msgpack")

    with pytest.raises(CacheMiss):
        route_store.load()
    assert not route_store.path.exists()


def test_route_catalog_unexpected_layout_is_discarded(route_store):
    route_store.path.parent.mkdir(parents=True)
    route_store.path.write_bytes(msgpack.packb({"version": CACHE_VERSION, "routes": [["B", "routeId=B"]]}))

    with pytest.raises(CacheMiss):
        route_store.load()
    assert not route_store.path.exists()


def test_set_directions_first_writer_wins():
    routes = {"15": Route("15", "routeId=15")}

    assert set_directions(routes, "15", "N-S")
    assert not set_directions(routes, "15", "E-W")
    assert not set_directions(routes, "unknown", "N-S")
    assert routes["15"].directions == "N-S"


def test_timetable_round_trip(schedule_store):
    schedule_store.save("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF, TIMETABLE)

    assert schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF) == TIMETABLE


def test_timetable_is_keyed_by_direction_and_day(schedule_store):
    schedule_store.save("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF, TIMETABLE)

    for day, direction in [
        (DayType.WEEKDAY, Direction.SOUTH),
        (DayType.WEEKDAY, Direction.UNSPECIFIED),
        (DayType.SATURDAY, Direction.NORTH),
    ]:
        with pytest.raises(CacheMiss):
            schedule_store.load("B", day, direction, VALID_AS_OF)


def test_stale_timetable_is_evicted(schedule_store):
    schedule_store.save("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF, TIMETABLE)
    path = schedule_store.path_for("B", DayType.WEEKDAY, Direction.NORTH)

    with pytest.raises(CacheMiss):
        schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, date(2021, 12, 1))
    assert not path.exists()

    # Evicted for good, even when asked with the original date
    with pytest.raises(CacheMiss):
        schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF)


def test_timetable_unknown_validity_is_a_miss(schedule_store):
    schedule_store.save("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF, TIMETABLE)

    with pytest.raises(CacheMiss):
        schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, None)
    assert schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF) == TIMETABLE


def test_timetable_version_mismatch_is_evicted(cache_dir, schedule_store):
    old_store = ScheduleStore(cache_dir, version=CACHE_VERSION + 1)
    old_store.save("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF, TIMETABLE)

    with pytest.raises(CacheMiss):
        schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF)
    assert not schedule_store.path_for("B", DayType.WEEKDAY, Direction.NORTH).exists()


def test_timetable_invalidate_and_clear(schedule_store):
    schedule_store.save("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF, TIMETABLE)
    schedule_store.save("15", DayType.SATURDAY, Direction.EAST, VALID_AS_OF, TIMETABLE)

    schedule_store.invalidate("B", DayType.WEEKDAY, Direction.NORTH)
    with pytest.raises(CacheMiss):
        schedule_store.load("B", DayType.WEEKDAY, Direction.NORTH, VALID_AS_OF)
    assert schedule_store.load("15", DayType.SATURDAY, Direction.EAST, VALID_AS_OF) == TIMETABLE

    schedule_store.clear()
    with pytest.raises(CacheMiss):
        schedule_store.load("15", DayType.SATURDAY, Direction.EAST, VALID_AS_OF)


def test_route_names_make_distinct_files(schedule_store):
    a = schedule_store.path_for("Route 1/2", DayType.WEEKDAY, Direction.NORTH)
    b = schedule_store.path_for("Route 1_2", DayType.WEEKDAY, Direction.NORTH)

    assert a != b
    assert "/" not in a.name


def test_validity_observations(validity):
    assert validity.observe_valid_as_of(VALID_AS_OF) is Observation.FIRST_OBSERVATION
    assert validity.observe_valid_as_of(VALID_AS_OF) is Observation.UNCHANGED
    assert validity.observe_valid_as_of(date(2021, 12, 1)) is Observation.CHANGED
    assert validity.valid_as_of == date(2021, 12, 1)


def test_validity_freshness(validity):
    today = date(2021, 11, 24)
    assert not validity.is_fresh_today(today)

    validity.record_check(today)

    assert validity.is_fresh_today(today)
    assert not validity.is_fresh_today(date(2021, 11, 25))


def test_validity_survives_restart(cache_dir, validity):
    validity.observe_valid_as_of(VALID_AS_OF)
    validity.record_check(date(2021, 11, 24))

    restarted = ValidityTracker(cache_dir, version=CACHE_VERSION)

    assert restarted.valid_as_of == VALID_AS_OF
    assert restarted.is_fresh_today(date(2021, 11, 24))


def test_validity_in_memory_only():
    tracker = ValidityTracker(version=CACHE_VERSION)
    tracker.record_check(date(2021, 11, 24))

    assert tracker.path is None
    assert tracker.is_fresh_today(date(2021, 11, 24))
