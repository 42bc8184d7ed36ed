"""
Driver visibility filter.
"""

from datetime import datetime, timezone

from fleetops.app.schemas.trip import TripRecord
from fleetops.app.services.visibility import filter_trips_for_driver, is_visible_to

NOW = datetime(2025, 3, 31, 6, 20, 9, tzinfo=timezone.utc)


def trip(trip_id, driver=None, secondary=None):
    return TripRecord(
        id=trip_id, destination="Depot", driver_id=driver, secondary_driver_id=secondary,
        created_at=NOW, updated_at=NOW,
    )


TRIPS = [
    trip("t1", driver="d1"),
    trip("t2", driver="d2", secondary="d1"),
    trip("t3", driver="d2"),
    trip("t4"),
    trip("t5", secondary="d1"),
]


def test_no_driver_returns_input_unchanged():
    assert filter_trips_for_driver(TRIPS, None) == TRIPS


def test_keeps_primary_and_secondary_assignments_in_order():
    result = filter_trips_for_driver(TRIPS, "d1")
    assert [t.id for t in result] == ["t1", "t2", "t5"]


def test_result_is_a_subset_matching_the_driver():
    for driver_id in ("d1", "d2", "nobody"):
        result = filter_trips_for_driver(TRIPS, driver_id)
        assert all(t in TRIPS for t in result)
        assert all(driver_id in (t.driver_id, t.secondary_driver_id) for t in result)


def test_unassigned_trip_is_invisible_to_drivers():
    assert is_visible_to(trip("t4"), "d1") is False
    assert is_visible_to(trip("t4"), None) is True


def test_accepts_any_iterable():
    assert [t.id for t in filter_trips_for_driver(iter(TRIPS), "d2")] == ["t2", "t3"]
