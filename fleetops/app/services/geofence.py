"""
Geofence monitor.

Each trip has up to two circular zones, around its start (pickup) and
end (drop-off) coordinates. A location sample is compared with the last
recorded state of each zone; a change is logged as a geofence event and
announced with an arrived/left notification.
"""

import logging
import math
import uuid
from typing import Callable, List, Optional, Tuple

from fleetops.app.core.exceptions import InvalidTransitionError
from fleetops.app.db.store import RowFilter, Store
from fleetops.app.models.notification import NotificationType
from fleetops.app.models.trip_enums import GeofenceTransition, GeofenceZone, TripStatus
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.trip import TripRecord
from fleetops.app.schemas.trip_execution import GeofenceCrossing, LocationRecordResponse
from fleetops.app.services.notification_service import NotificationDispatcher
from fleetops.app.services.timestamps import format_timestamp, utc_now
from fleetops.app.services.trip_lifecycle import TripLifecycle

logger = logging.getLogger("fleetops.geofence")

GEOFENCE_TABLE = "geofence_events"

EARTH_RADIUS_METERS = 6371000.0

_CROSSING_TYPES = {
    (GeofenceZone.PICKUP, GeofenceTransition.ENTERED): NotificationType.ARRIVED_AT_PICKUP,
    (GeofenceZone.PICKUP, GeofenceTransition.EXITED): NotificationType.LEFT_PICKUP,
    (GeofenceZone.DROPOFF, GeofenceTransition.ENTERED): NotificationType.ARRIVED_AT_DROPOFF,
    (GeofenceZone.DROPOFF, GeofenceTransition.EXITED): NotificationType.LEFT_DROPOFF,
}


def haversine_meters(origin: Tuple[float, float], target: Tuple[float, float]) -> float:
    """Great-circle distance between two (lat, lon) points, in meters."""
    lat1, lon1 = map(math.radians, origin)
    lat2, lon2 = map(math.radians, target)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def zones_for(trip: TripRecord) -> List[Tuple[GeofenceZone, Tuple[float, float]]]:
    zones = []
    if trip.start_coordinate is not None:
        zones.append((GeofenceZone.PICKUP, trip.start_coordinate))
    if trip.end_coordinate is not None:
        zones.append((GeofenceZone.DROPOFF, trip.end_coordinate))
    return zones


class GeofenceMonitor:

    def __init__(
        self,
        store: Store,
        lifecycle: TripLifecycle,
        dispatcher: NotificationDispatcher,
        radius_meters: float = 50.0,
        clock: Callable = utc_now,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.dispatcher = dispatcher
        self.radius_meters = radius_meters
        self.clock = clock

    async def _was_inside(self, trip_id: str, zone: GeofenceZone) -> bool:
        rows = await self.store.query(GEOFENCE_TABLE, RowFilter(equals={"trip_id": trip_id, "zone": zone.value}))
        if not rows:
            return False
        # Stable sort keeps store order for events written in the same second
        latest = sorted(rows, key=lambda row: row["created_at"])[-1]
        return GeofenceTransition(latest["transition"]) == GeofenceTransition.ENTERED

    async def record_location(
        self,
        trip_id: str,
        latitude: float,
        longitude: float,
        actor: Optional[Actor] = None,
        broadcast: bool = False,
    ) -> LocationRecordResponse:
        """
        Process one location sample for a trip in progress.

        Raises:
            InvalidTransitionError: if the trip is not in progress
        """
        trip = await self.lifecycle.get(trip_id, actor)
        if trip.status != TripStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Can only record location for a trip in progress, current status: {trip.status.value}",
                current=trip.status.value,
            )

        position = (latitude, longitude)
        crossings = []
        for zone, center in zones_for(trip):
            inside = haversine_meters(center, position) <= self.radius_meters
            if inside == await self._was_inside(trip.id, zone):
                continue

            transition = GeofenceTransition.ENTERED if inside else GeofenceTransition.EXITED
            draft = self.dispatcher.build(
                _CROSSING_TYPES[(zone, transition)], trip, actor, latitude=latitude, longitude=longitude
            )
            # Zone state only advances once the alert is stored
            notification_id = await self.dispatcher.persist(draft)
            await self.store.insert(GEOFENCE_TABLE, {
                "id": str(uuid.uuid4()),
                "trip_id": trip.id,
                "zone": zone.value,
                "transition": transition.value,
                "latitude": latitude,
                "longitude": longitude,
                "message": draft.message,
                "created_at": format_timestamp(self.clock()),
            })
            logger.info("Trip %s %s %s zone", trip.id, transition.value, zone.value)
            crossings.append(GeofenceCrossing(zone=zone, transition=transition, notification_id=notification_id))

        location_notification_id = None
        if broadcast:
            location_notification_id = await self.dispatcher.dispatch(
                NotificationType.LOCATION_UPDATE, trip, actor, latitude=latitude, longitude=longitude
            )

        return LocationRecordResponse(
            trip_id=trip.id,
            crossings=crossings,
            location_notification_id=location_notification_id,
        )
