"""
Trip lifecycle.

Status moves strictly forward, one step at a time:

    pending -> assigned -> in progress -> delivered

and each step is gated (driver and vehicle set, pre-trip inspection done,
post-trip inspection done). Setting the current status again is a plain
field update. Every command re-fetches the trip before returning.
"""

import logging
from typing import Callable, Iterable, List, Optional, Tuple

from fleetops.app.core.exceptions import InsufficientPermissionsError, InvalidTransitionError
from fleetops.app.models.enums import UserRole
from fleetops.app.models.notification import NotificationType
from fleetops.app.models.trip_enums import TripStatus
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.trip import TripBoard, TripCreate, TripPatch, TripRecord
from fleetops.app.services.notification_service import NotificationDispatcher
from fleetops.app.services.timestamps import format_timestamp, utc_now
from fleetops.app.services.trip_repository import TripRepository

logger = logging.getLogger("fleetops.lifecycle")

STATUS_ORDER = [TripStatus.PENDING, TripStatus.ASSIGNED, TripStatus.IN_PROGRESS, TripStatus.DELIVERED]

LEGAL_TRANSITIONS = {
    TripStatus.PENDING: TripStatus.ASSIGNED,
    TripStatus.ASSIGNED: TripStatus.IN_PROGRESS,
    TripStatus.IN_PROGRESS: TripStatus.DELIVERED,
}


def validate_transition(current: TripStatus, target: TripStatus, trip: TripRecord) -> None:
    """
    Check a status change against the lifecycle.

    ``trip`` is the record as it will look after the update, so a single
    patch may assign a driver and vehicle and move to ``assigned`` at once.

    Raises:
        InvalidTransitionError: on a backward move, a skipped step, or a closed gate
    """
    current, target = TripStatus(current), TripStatus(target)
    if current == target:
        return

    if STATUS_ORDER.index(target) < STATUS_ORDER.index(current):
        raise InvalidTransitionError(
            f"Cannot move trip back from {current.value} to {target.value}",
            current=current.value, target=target.value,
        )
    if LEGAL_TRANSITIONS.get(current) != target:
        raise InvalidTransitionError(
            f"Trip must pass through {LEGAL_TRANSITIONS[current].value} before {target.value}",
            current=current.value, target=target.value,
        )

    if target == TripStatus.ASSIGNED and not (trip.driver_id and trip.vehicle_id):
        raise InvalidTransitionError(
            "A driver and a vehicle must be assigned first",
            current=current.value, target=target.value,
        )
    if target == TripStatus.IN_PROGRESS and not trip.has_completed_pre_trip:
        raise InvalidTransitionError(
            "Pre-trip inspection must be completed before starting",
            current=current.value, target=target.value,
        )
    if target == TripStatus.DELIVERED and not trip.has_completed_post_trip:
        raise InvalidTransitionError(
            "Post-trip inspection must be completed before delivery",
            current=current.value, target=target.value,
        )


_STATE_REQUIREMENTS = [
    (TripStatus.ASSIGNED, lambda trip: bool(trip.driver_id and trip.vehicle_id), "its driver and vehicle"),
    (TripStatus.IN_PROGRESS, lambda trip: trip.has_completed_pre_trip, "its pre-trip inspection"),
    (TripStatus.DELIVERED, lambda trip: trip.has_completed_post_trip, "its post-trip inspection"),
]


def validate_reached_state(trip: TripRecord) -> None:
    """
    Check that a record still satisfies the gate of every state it has passed.

    Raises:
        InvalidTransitionError: if an update would reopen a passed gate
    """
    reached = STATUS_ORDER.index(trip.status)
    for gate, satisfied, requirement in _STATE_REQUIREMENTS:
        if STATUS_ORDER.index(gate) <= reached and not satisfied(trip):
            raise InvalidTransitionError(
                f"A {trip.status.value} trip cannot drop {requirement}",
                current=trip.status.value, target=trip.status.value,
            )


def categorize(trips: Iterable[TripRecord]) -> TripBoard:
    """Split trips into the current, in-progress, upcoming and completed views."""
    board = TripBoard()
    for trip in trips:
        if trip.status == TripStatus.IN_PROGRESS:
            board.in_progress.append(trip)
            # One trip per driver; across a fleet, current is the first one seen
            if board.current is None:
                board.current = trip
        elif trip.status in (TripStatus.PENDING, TripStatus.ASSIGNED):
            board.upcoming.append(trip)
        elif trip.status == TripStatus.DELIVERED and trip.has_completed_post_trip:
            board.completed.append(trip)
    return board


class TripLifecycle:

    def __init__(self, repository: TripRepository, dispatcher: NotificationDispatcher, clock: Callable = utc_now):
        self.repository = repository
        self.dispatcher = dispatcher
        self.clock = clock

    @staticmethod
    def _authorize(trip: TripRecord, actor: Optional[Actor]) -> None:
        if actor is not None and actor.role == UserRole.DRIVER and not trip.has_driver(actor.user_id):
            raise InsufficientPermissionsError(
                "This trip is not assigned to you", details={"trip_id": trip.id}
            )

    async def create(self, payload: TripCreate, actor: Optional[Actor] = None) -> TripRecord:
        fleet_manager_id = actor.user_id if actor is not None and actor.is_fleet_manager else None
        created = await self.repository.create(payload, fleet_manager_id=fleet_manager_id)
        return await self.repository.get(created.id)

    async def get(self, trip_id: str, actor: Optional[Actor] = None) -> TripRecord:
        trip = await self.repository.get(trip_id)
        self._authorize(trip, actor)
        return trip

    async def board(self, for_driver: Optional[str] = None) -> Tuple[List[TripRecord], TripBoard]:
        trips = await self.repository.list_trips(for_driver=for_driver)
        return trips, categorize(trips)

    async def update_trip(self, trip_id: str, patch: TripPatch, actor: Optional[Actor] = None) -> TripRecord:
        """
        Apply a partial update, enforcing the lifecycle on status changes.

        The trip notification for a start or completion is rendered before
        anything is written, so a trip missing the fields the notification
        needs is rejected without being modified.
        """
        trip = await self.repository.get(trip_id)
        self._authorize(trip, actor)

        merged = patch.apply_to(trip)
        validate_transition(trip.status, merged.status, merged)
        validate_reached_state(merged)

        extra = {}
        draft = None
        if merged.status != trip.status:
            now = self.clock()
            if merged.status == TripStatus.IN_PROGRESS:
                await self._ensure_no_active_trip(merged)
                if merged.start_time is None:
                    extra["start_time"] = format_timestamp(now)
                    merged = merged.model_copy(update={"start_time": now})
                draft = self.dispatcher.build(NotificationType.TRIP_STARTED, merged, actor)
            elif merged.status == TripStatus.DELIVERED:
                extra["end_time"] = format_timestamp(now)
                merged = merged.model_copy(update={"end_time": now})
                draft = self.dispatcher.build(NotificationType.TRIP_COMPLETED, merged, actor)

        await self.repository.update(trip, patch, extra)
        if merged.status != trip.status:
            logger.info("Trip %s moved %s -> %s", trip.id, trip.status.value, merged.status.value)
        if draft is not None:
            await self.dispatcher.persist(draft)
        return await self.repository.get(trip_id)

    async def transition(self, trip_id: str, target: TripStatus, actor: Optional[Actor] = None) -> TripRecord:
        return await self.update_trip(trip_id, TripPatch(status=target), actor)

    async def assign(
        self,
        trip_id: str,
        driver_id: str,
        vehicle_id: str,
        secondary_driver_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> TripRecord:
        """Set the crew and vehicle, moving a pending trip to assigned."""
        trip = await self.repository.get(trip_id)
        fields = {"driver_id": driver_id, "vehicle_id": vehicle_id}
        if secondary_driver_id is not None:
            fields["secondary_driver_id"] = secondary_driver_id
        if trip.status == TripStatus.PENDING:
            fields["status"] = TripStatus.ASSIGNED
        return await self.update_trip(trip_id, TripPatch(**fields), actor)

    async def record_inspection(
        self,
        trip_id: str,
        pre_trip: bool,
        issues: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> TripRecord:
        """
        Close the pre- or post-trip inspection gate.

        Reported issues do not hold the gate open; they are forwarded to
        the fleet manager as an inspection-issue notification.
        """
        trip = await self.repository.get(trip_id)
        self._authorize(trip, actor)

        if pre_trip and trip.status not in (TripStatus.PENDING, TripStatus.ASSIGNED):
            raise InvalidTransitionError(
                "Pre-trip inspection can only be recorded before the trip starts",
                current=trip.status.value,
            )
        if not pre_trip and trip.status != TripStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                "Post-trip inspection can only be recorded for a trip in progress",
                current=trip.status.value,
            )

        draft = None
        if issues:
            kind = NotificationType.PRE_INSPECTION_ISSUE if pre_trip else NotificationType.POST_INSPECTION_ISSUE
            draft = self.dispatcher.build(kind, trip, actor, issue=issues)

        field = "has_completed_pre_trip" if pre_trip else "has_completed_post_trip"
        await self.repository.update(trip, TripPatch(**{field: True}))
        if draft is not None:
            await self.dispatcher.persist(draft)
        return await self.repository.get(trip_id)

    async def delete(self, trip_id: str) -> None:
        trip = await self.repository.get(trip_id)
        await self.repository.soft_delete(trip)

    async def _ensure_no_active_trip(self, trip: TripRecord) -> None:
        for driver_id in filter(None, (trip.driver_id, trip.secondary_driver_id)):
            active = await self.repository.count_in_progress_for_driver(driver_id, exclude_trip_id=trip.id)
            if active:
                raise InvalidTransitionError(
                    f"Driver {driver_id} already has a trip in progress",
                    current=TripStatus.ASSIGNED.value, target=TripStatus.IN_PROGRESS.value,
                )
