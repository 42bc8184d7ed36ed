"""
Failure Injection Tests.

Store outages, retry boundaries and how failures surface to callers.
"""

import pytest
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import DRIVER_ID, VEHICLE_ID
from fleetops.app.core.exceptions import DispatchError, ParseError, StoreError
from fleetops.app.core.reliability import is_transient
from fleetops.app.db.store import RowFilter, SQLAlchemyStore
from fleetops.app.models.notification import NotificationType
from fleetops.app.models.trip_enums import TripStatus
from fleetops.app.schemas.trip import TripCreate
from fleetops.app.services.notification_service import NotificationDispatcher


class FlakySessionFactory:
    """Session factory that fails the first ``failures`` sessions with a dropped connection."""

    def __init__(self, factory, failures, error=None):
        self.factory = factory
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error or OperationalError("SELECT 1", {}, ConnectionResetError("connection reset by peer"))
        return self.factory()


def test_transient_classification():
    assert is_transient(OperationalError("SELECT 1", {}, Exception("gone")))
    assert is_transient(ConnectionError())
    assert not is_transient(IntegrityError("INSERT", {}, Exception("duplicate")))
    assert not is_transient(ValueError())


async def test_query_is_retried_on_transient_failure(session_factory):
    flaky = FlakySessionFactory(session_factory, failures=2)
    store = SQLAlchemyStore(flaky, retry_attempts=3, retry_base_delay=0)

    assert await store.query("trips", RowFilter()) == []
    assert flaky.calls == 3


async def test_query_gives_up_after_bounded_attempts(session_factory):
    flaky = FlakySessionFactory(session_factory, failures=5)
    store = SQLAlchemyStore(flaky, retry_attempts=3, retry_base_delay=0)

    with pytest.raises(StoreError):
        await store.query("trips", RowFilter())
    assert flaky.calls == 3


@pytest.mark.parametrize("error", [ConnectionError("reset"), TimeoutError("timed out")])
async def test_exhausted_transport_errors_are_wrapped(session_factory, error):
    flaky = FlakySessionFactory(session_factory, failures=5, error=error)
    store = SQLAlchemyStore(flaky, retry_attempts=3, retry_base_delay=0)

    with pytest.raises(StoreError) as exc_info:
        await store.query("trips", RowFilter())
    assert flaky.calls == 3
    assert exc_info.value.__cause__ is error


async def test_transport_error_on_insert_becomes_dispatch_error(session_factory, clock):
    flaky = FlakySessionFactory(session_factory, failures=1, error=ConnectionError("reset"))
    dispatcher = NotificationDispatcher(SQLAlchemyStore(flaky, retry_attempts=3, retry_base_delay=0), clock)

    with pytest.raises(DispatchError):
        await dispatcher.dispatch(NotificationType.TRIP_DELAYED, reason="Traffic")
    assert flaky.calls == 1


async def test_insert_is_never_retried(session_factory):
    flaky = FlakySessionFactory(session_factory, failures=1)
    store = SQLAlchemyStore(flaky, retry_attempts=3, retry_base_delay=0)
    row = {
        "id": "n-1", "type": "trip_delayed", "message": "late", "is_read": False,
        "created_at": "2025-03-31 06:20:09+0000",
    }

    with pytest.raises(StoreError):
        await store.insert("notifications", row)
    assert flaky.calls == 1


async def test_duplicate_insert_is_wrapped(store):
    row = {
        "id": "n-1", "type": "trip_delayed", "message": "late", "is_read": False,
        "created_at": "2025-03-31 06:20:09+0000",
    }
    await store.insert("notifications", row)

    with pytest.raises(StoreError):
        await store.insert("notifications", row)


async def test_unknown_table_is_a_store_error(store):
    with pytest.raises(StoreError):
        await store.query("parcels", RowFilter())


async def test_dispatch_persist_failure_is_dispatch_error(dispatcher, store, lifecycle, fleet_manager, mocker):
    trip = await lifecycle.create(TripCreate(destination="Depot", pickup="Yard"), fleet_manager)
    mocker.patch.object(store, "insert", side_effect=StoreError("connection refused"))

    with pytest.raises(DispatchError) as exc_info:
        await dispatcher.dispatch(NotificationType.TRIP_DELAYED, trip, reason="Traffic")

    assert exc_info.value.details["type"] == "trip_delayed"
    assert isinstance(exc_info.value.__cause__, StoreError)


async def test_lifecycle_surfaces_notification_failure(lifecycle, store, fleet_manager, driver, mocker):
    trip = await lifecycle.create(TripCreate(destination="Depot", pickup="Yard"), fleet_manager)
    await lifecycle.assign(trip.id, driver_id=DRIVER_ID, vehicle_id=VEHICLE_ID, actor=fleet_manager)
    await lifecycle.record_inspection(trip.id, pre_trip=True, actor=driver)
    mocker.patch.object(store, "insert", side_effect=StoreError("connection refused"))

    with pytest.raises(DispatchError):
        await lifecycle.transition(trip.id, TripStatus.IN_PROGRESS, driver)


async def test_missing_notification_fields_block_the_transition(lifecycle, store, fleet_manager, driver):
    # No pickup and no start coordinates: the start notification cannot be rendered
    trip = await lifecycle.create(TripCreate(destination="Depot"), fleet_manager)
    await lifecycle.assign(trip.id, driver_id=DRIVER_ID, vehicle_id=VEHICLE_ID, actor=fleet_manager)
    await lifecycle.record_inspection(trip.id, pre_trip=True, actor=driver)

    with pytest.raises(DispatchError):
        await lifecycle.transition(trip.id, TripStatus.IN_PROGRESS, driver)

    assert (await lifecycle.get(trip.id)).status == TripStatus.ASSIGNED
    assert await store.query("notifications", RowFilter()) == []


async def test_unparseable_stored_timestamp_raises_parse_error(store, lifecycle):
    await store.insert("trips", {
        "id": "legacy-1",
        "destination": "Depot",
        "trip_status": TripStatus.PENDING.value,
        "has_completed_pre_trip": False,
        "has_completed_post_trip": False,
        "created_at": "31/03/2025 06:20",
        "updated_at": "31/03/2025 06:20",
        "is_deleted": False,
    })

    with pytest.raises(ParseError):
        await lifecycle.board()


async def test_legacy_timestamp_formats_are_readable(store, lifecycle):
    await store.insert("trips", {
        "id": "legacy-2",
        "destination": "Depot",
        "trip_status": TripStatus.PENDING.value,
        "has_completed_pre_trip": False,
        "has_completed_post_trip": False,
        "created_at": "2025-03-31T06:20:09.123456",
        "updated_at": "2025-04-01",
        "is_deleted": False,
    })

    trips, board = await lifecycle.board()

    assert trips[0].created_at == datetime(2025, 3, 31, 6, 20, 9, tzinfo=timezone.utc)
    assert trips[0].updated_at == datetime(2025, 4, 1, tzinfo=timezone.utc)
    assert board.upcoming[0].id == "legacy-2"


@pytest.mark.asyncio
async def test_store_outage_is_503(client, store, manager_headers, mocker):
    mocker.patch.object(store, "query", side_effect=StoreError("database unavailable"))

    response = await client.get("/v1/fleet-manager/trips", headers=manager_headers)

    assert response.status_code == 503
    assert response.json()["error_code"] == "ERR_STORE_001"
