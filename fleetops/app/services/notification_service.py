"""
Notification Service.

The dispatcher renders one notification per operational event and writes
it with a single insert; the inbox side lists and acknowledges them.
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from fleetops.app.core.exceptions import DispatchError, ResourceNotFoundError, StoreError
from fleetops.app.db.store import RowFilter, Store
from fleetops.app.models.enums import UserRole
from fleetops.app.models.notification import NotificationType
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.notification import NotificationCreate, NotificationMetadata, NotificationResponse
from fleetops.app.schemas.trip import TripRecord
from fleetops.app.services.timestamps import format_iso, format_timestamp, utc_now

logger = logging.getLogger("fleetops.notifications")

NOTIFICATIONS_TABLE = "notifications"

# Kinds that describe something happening to a trip and cannot be rendered without one
_TRIP_BOUND = {
    NotificationType.TRIP_STARTED,
    NotificationType.TRIP_COMPLETED,
    NotificationType.VEHICLE_ISSUE,
    NotificationType.ARRIVED_AT_PICKUP,
    NotificationType.LEFT_PICKUP,
    NotificationType.ARRIVED_AT_DROPOFF,
    NotificationType.LEFT_DROPOFF,
}

_GEOFENCE_PHRASES = {
    NotificationType.ARRIVED_AT_PICKUP: ("arrived at pickup", "start_point"),
    NotificationType.LEFT_PICKUP: ("left pickup", "start_point"),
    NotificationType.ARRIVED_AT_DROPOFF: ("arrived at drop-off", "end_point"),
    NotificationType.LEFT_DROPOFF: ("left drop-off", "end_point"),
}


def _coordinate(value: Optional[float]) -> Optional[str]:
    return "%.6f" % value if value is not None else None


def _route(trip: TripRecord) -> Tuple[str, str]:
    """Start and end labels; both are required for trip-bound messages."""
    missing = [name for name in ("start_point", "end_point") if getattr(trip, name) is None]
    if missing:
        raise DispatchError(
            f"Trip {trip.id} is missing {', '.join(missing)}",
            details={"trip_id": trip.id, "missing": missing},
        )
    return trip.start_point, trip.end_point


def _require(kind: NotificationType, **values) -> None:
    missing = [name for name, value in values.items() if value in (None, "")]
    if missing:
        raise DispatchError(
            f"Cannot build {kind.value} notification without {', '.join(missing)}",
            details={"type": kind.value, "missing": missing},
        )


class NotificationDispatcher:
    """
    Builds and persists notifications.

    ``build`` is pure: it validates inputs and renders the message and
    metadata, raising ``DispatchError`` before anything touches the store.
    Callers that must not write a half-finished change build first and
    persist afterwards.
    """

    def __init__(self, store: Store, clock: Callable = utc_now):
        self.store = store
        self.clock = clock

    def build(
        self,
        kind: NotificationType,
        trip: Optional[TripRecord] = None,
        actor: Optional[Actor] = None,
        *,
        issue: Optional[str] = None,
        reason: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        fuel_amount: Optional[float] = None,
        text: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        fleet_manager_id: Optional[str] = None,
    ) -> NotificationCreate:
        """
        Render a notification for ``kind``.

        Recipients are copied from ``trip`` when given. The explicit id
        arguments override them, and ``actor`` fills the slot matching its
        role. Unknown recipients stay empty.

        Raises:
            DispatchError: if a value the message needs is missing
        """
        kind = NotificationType(kind)
        if kind in _TRIP_BOUND and trip is None:
            raise DispatchError(f"{kind.value} requires a trip", details={"type": kind.value})

        now = self.clock()
        stamp = format_iso(now)
        message, metadata = self._render(
            kind, trip, stamp,
            issue=issue, reason=reason, latitude=latitude, longitude=longitude,
            fuel_amount=fuel_amount, text=text,
        )

        recipients = {
            "trip_id": trip.id if trip else None,
            "vehicle_id": trip.vehicle_id if trip else None,
            "driver_id": trip.driver_id if trip else None,
            "fleet_manager_id": trip.fleet_manager_id if trip else None,
        }
        if actor is not None:
            if actor.role == UserRole.DRIVER:
                recipients["driver_id"] = actor.user_id
            elif actor.role == UserRole.FLEET_MANAGER:
                recipients["fleet_manager_id"] = actor.user_id
        for key, value in (("vehicle_id", vehicle_id), ("driver_id", driver_id), ("fleet_manager_id", fleet_manager_id)):
            if value is not None:
                recipients[key] = value
        if kind == NotificationType.VEHICLE_ISSUE and recipients["driver_id"] is None:
            raise DispatchError(
                f"Trip {trip.id} has no driver to attribute the vehicle issue to",
                details={"trip_id": trip.id, "missing": ["driver_id"]},
            )

        return NotificationCreate(
            id=str(uuid.uuid4()),
            type=kind,
            message=message,
            metadata=metadata,
            created_at=format_timestamp(now),
            **recipients,
        )

    def _render(self, kind, trip, stamp, *, issue, reason, latitude, longitude, fuel_amount, text):
        if kind == NotificationType.TRIP_STARTED:
            start, end = _route(trip)
            return (
                f"Trip from {start} to {end} has started.",
                NotificationMetadata(start_point=start, end_point=end, start_time=stamp),
            )

        if kind == NotificationType.TRIP_COMPLETED:
            start, end = _route(trip)
            if trip.estimated_distance is None:
                raise DispatchError(
                    f"Trip {trip.id} has no estimated distance",
                    details={"trip_id": trip.id, "missing": ["estimated_distance"]},
                )
            return (
                f"Trip from {start} to {end} has been completed.",
                NotificationMetadata(
                    start_point=start, end_point=end, end_time=stamp,
                    distance_km="%.2f" % trip.estimated_distance,
                ),
            )

        if kind in (NotificationType.PRE_INSPECTION_ISSUE, NotificationType.POST_INSPECTION_ISSUE):
            _require(kind, issue=issue)
            phase = "Pre-trip" if kind == NotificationType.PRE_INSPECTION_ISSUE else "Post-trip"
            where = f" for trip to {trip.destination}" if trip else ""
            return (
                f"{phase} inspection reported issues{where}: {issue}",
                NotificationMetadata(issue=issue, inspection_time=stamp),
            )

        if kind == NotificationType.VEHICLE_ISSUE:
            _require(kind, issue=issue)
            start, end = _route(trip)
            return (
                f"Vehicle issue reported during trip from {start} to {end}: {issue}",
                NotificationMetadata(issue=issue, report_time=stamp),
            )

        if kind == NotificationType.TRIP_DELAYED:
            _require(kind, reason=reason)
            where = f" to {trip.destination}" if trip else ""
            return f"Trip{where} is delayed: {reason}", NotificationMetadata(reason=reason, delay_time=stamp)

        if kind == NotificationType.LOCATION_UPDATE:
            _require(kind, latitude=latitude, longitude=longitude)
            lat, lon = _coordinate(latitude), _coordinate(longitude)
            return (
                f"Location updated to {lat}, {lon}",
                NotificationMetadata(latitude=lat, longitude=lon, update_time=stamp),
            )

        if kind == NotificationType.FUEL_BILL_SUBMITTED:
            _require(kind, fuel_amount=fuel_amount)
            amount = "%.2f" % fuel_amount
            return f"Fuel bill of {amount} submitted", NotificationMetadata(fuel_amount=amount, submission_time=stamp)

        if kind == NotificationType.CHAT_MESSAGE:
            _require(kind, text=text)
            return text, None

        if kind == NotificationType.EMERGENCY:
            detail = f": {issue}" if issue else ""
            where = f" during trip to {trip.destination}" if trip else ""
            return (
                f"Emergency reported{where}{detail}",
                NotificationMetadata(
                    issue=issue, report_time=stamp,
                    latitude=_coordinate(latitude), longitude=_coordinate(longitude),
                ),
            )

        if kind in (NotificationType.MAINTENANCE, NotificationType.ISSUE_REPORT_SUBMITTED):
            _require(kind, issue=issue)
            label = "Maintenance request" if kind == NotificationType.MAINTENANCE else "Issue report"
            return f"{label} submitted: {issue}", NotificationMetadata(issue=issue, report_time=stamp)

        # Geofence transitions
        verb, label_attr = _GEOFENCE_PHRASES[kind]
        _route(trip)
        return (
            f"Vehicle {verb} ({getattr(trip, label_attr)})",
            NotificationMetadata(
                latitude=_coordinate(latitude), longitude=_coordinate(longitude), update_time=stamp,
            ),
        )

    async def persist(self, draft: NotificationCreate) -> str:
        """
        Write a built notification with one insert.

        Raises:
            DispatchError: if the store rejects the write
        """
        try:
            stored = await self.store.insert(NOTIFICATIONS_TABLE, draft.to_row())
        except StoreError as e:
            logger.error("Failed to persist %s notification: %s", draft.type.value, e.message)
            raise DispatchError(
                f"Failed to persist {draft.type.value} notification",
                details={"type": draft.type.value, "trip_id": draft.trip_id},
            ) from e
        logger.info("Notification %s (%s) dispatched for trip %s", stored["id"], draft.type.value, draft.trip_id)
        return stored["id"]

    async def dispatch(self, kind: NotificationType, trip: Optional[TripRecord] = None, actor: Optional[Actor] = None, **extra) -> str:
        """Build and persist in one step. Returns the new notification id."""
        return await self.persist(self.build(kind, trip, actor, **extra))


class NotificationService:
    """Inbox operations for the notifications addressed to one user."""

    def __init__(self, store: Store, list_limit: int = 50):
        self.store = store
        self.list_limit = list_limit

    @staticmethod
    def _addressed_to(actor: Actor, **equals) -> RowFilter:
        return RowFilter(
            equals=equals,
            any_of={"driver_id": actor.user_id, "fleet_manager_id": actor.user_id},
        )

    async def list_for_user(self, actor: Actor, unread_only: bool = False, limit: Optional[int] = None) -> List[NotificationResponse]:
        """Newest first."""
        equals: Dict[str, object] = {"is_read": False} if unread_only else {}
        rows = await self.store.query(NOTIFICATIONS_TABLE, self._addressed_to(actor, **equals))
        notifications = [NotificationResponse.from_row(row) for row in rows]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications[: limit or self.list_limit]

    async def unread_count(self, actor: Actor) -> int:
        rows = await self.store.query(
            NOTIFICATIONS_TABLE, self._addressed_to(actor, is_read=False), projection=["id"]
        )
        return len(rows)

    async def mark_read(self, notification_id: str, actor: Actor) -> NotificationResponse:
        """Mark a notification as read."""
        rows = await self.store.query(NOTIFICATIONS_TABLE, self._addressed_to(actor, id=notification_id))
        if not rows:
            raise ResourceNotFoundError("Notification", notification_id)
        stored = await self.store.update(NOTIFICATIONS_TABLE, notification_id, {"is_read": True})
        return NotificationResponse.from_row(stored)

    async def mark_all_read(self, actor: Actor) -> int:
        """Mark all notifications as read for a user."""
        return await self.store.update_where(
            NOTIFICATIONS_TABLE, self._addressed_to(actor, is_read=False), {"is_read": True}
        )
