"""
Proof-of-delivery receipt.
"""

from datetime import datetime
from typing import Optional

from fleetops.app.core.exceptions import InvalidTransitionError
from fleetops.app.models.trip_enums import TripStatus
from fleetops.app.schemas.trip import TripRecord
from fleetops.app.schemas.trip_execution import DeliveryReceipt
from fleetops.app.services.timestamps import utc_now


def build_receipt(trip: TripRecord, issued_at: Optional[datetime] = None) -> DeliveryReceipt:
    """
    Receipt for a delivered trip whose post-trip inspection is done.

    Raises:
        InvalidTransitionError: if the trip is not eligible yet
    """
    if trip.status != TripStatus.DELIVERED or not trip.has_completed_post_trip:
        raise InvalidTransitionError(
            "Receipts are only issued for delivered trips with a completed post-trip inspection",
            current=trip.status.value,
            target=TripStatus.DELIVERED.value,
        )
    return DeliveryReceipt(
        trip_id=trip.id,
        status=trip.status,
        pickup=trip.pickup,
        destination=trip.destination,
        vehicle_id=trip.vehicle_id,
        driver_id=trip.driver_id,
        secondary_driver_id=trip.secondary_driver_id,
        start_time=trip.start_time,
        delivered_at=trip.end_time or trip.updated_at,
        distance_km="%.2f" % trip.estimated_distance if trip.estimated_distance is not None else None,
        post_trip_inspection_completed=trip.has_completed_post_trip,
        issued_at=issued_at or utc_now(),
    )
