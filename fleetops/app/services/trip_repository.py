"""
Trip repository.

CRUD and listing for trips against the Store collaborator. Soft-deleted
trips never leave this module through a read.
"""

import logging
import uuid
from typing import Callable, List, Optional

from fleetops.app.core.exceptions import ResourceNotFoundError
from fleetops.app.db.store import RowFilter, Store
from fleetops.app.models.trip_enums import TripStatus
from fleetops.app.schemas.trip import TripCreate, TripPatch, TripRecord
from fleetops.app.services.timestamps import format_timestamp, utc_now
from fleetops.app.services.visibility import filter_trips_for_driver

logger = logging.getLogger("fleetops.trips")

TRIPS_TABLE = "trips"


class TripRepository:

    def __init__(self, store: Store, clock: Callable = utc_now):
        self.store = store
        self.clock = clock

    async def create(self, payload: TripCreate, fleet_manager_id: Optional[str] = None) -> TripRecord:
        """Insert a new trip in ``pending`` with both inspection gates open."""
        now = format_timestamp(self.clock())
        row = payload.model_dump()
        for field in ("start_time", "end_time"):
            if row[field] is not None:
                row[field] = format_timestamp(row[field])
        row.update(
            id=str(uuid.uuid4()),
            trip_status=TripStatus.PENDING.value,
            has_completed_pre_trip=False,
            has_completed_post_trip=False,
            fleet_manager_id=fleet_manager_id,
            created_at=now,
            updated_at=now,
            is_deleted=False,
        )
        stored = await self.store.insert(TRIPS_TABLE, row)
        logger.info("Trip %s created for destination %r", stored["id"], stored["destination"])
        return TripRecord.from_row(stored)

    async def get(self, trip_id: str) -> TripRecord:
        """
        Fetch a live trip.

        Raises:
            ResourceNotFoundError: if the trip is missing or soft-deleted
        """
        rows = await self.store.query(TRIPS_TABLE, RowFilter(equals={"id": trip_id}))
        if not rows:
            raise ResourceNotFoundError("Trip", trip_id)
        return TripRecord.from_row(rows[0])

    async def list_trips(self, for_driver: Optional[str] = None) -> List[TripRecord]:
        """
        List live trips, oldest first.

        With ``for_driver`` the store narrows to rows where the driver holds
        either slot; the visibility filter is applied on top so the result
        never depends on how faithfully a store implements OR filters.
        """
        row_filter = RowFilter()
        if for_driver is not None:
            row_filter.any_of = {"driver_id": for_driver, "secondary_driver_id": for_driver}
        rows = await self.store.query(TRIPS_TABLE, row_filter)
        trips = sorted((TripRecord.from_row(row) for row in rows), key=lambda trip: trip.created_at)
        return filter_trips_for_driver(trips, for_driver)

    async def update(self, trip: TripRecord, patch: TripPatch, extra: dict = None) -> TripRecord:
        """
        Apply ``patch`` field by field and rewrite ``updated_at``.

        ``updated_at`` never moves backwards, even if the clock does.
        """
        row = patch.to_row()
        row.update(extra or {})
        row["updated_at"] = format_timestamp(max(self.clock(), trip.updated_at))
        stored = await self.store.update(TRIPS_TABLE, trip.id, row)
        if stored is None:
            raise ResourceNotFoundError("Trip", trip.id)
        return TripRecord.from_row(stored)

    async def soft_delete(self, trip: TripRecord) -> None:
        await self.store.update(
            TRIPS_TABLE,
            trip.id,
            {"is_deleted": True, "updated_at": format_timestamp(max(self.clock(), trip.updated_at))},
        )
        logger.info("Trip %s soft-deleted", trip.id)

    async def count_in_progress_for_driver(self, driver_id: str, exclude_trip_id: str = None) -> int:
        """
        Count IN_PROGRESS trips where the driver holds either slot.

        Should be 0 or 1 (a driver runs one trip at a time).
        """
        trips = await self.list_trips(for_driver=driver_id)
        return sum(
            1 for trip in trips
            if trip.status == TripStatus.IN_PROGRESS and trip.id != exclude_trip_id
        )
