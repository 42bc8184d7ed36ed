"""
Driver visibility.

A trip is visible to a driver who occupies either driver slot. With no
driver requested (fleet manager view) every trip is visible.
"""

from typing import Iterable, List, Optional

from fleetops.app.schemas.trip import TripRecord


def is_visible_to(trip: TripRecord, driver_id: Optional[str]) -> bool:
    if driver_id is None:
        return True
    return trip.driver_id == driver_id or trip.secondary_driver_id == driver_id


def filter_trips_for_driver(trips: Iterable[TripRecord], driver_id: Optional[str]) -> List[TripRecord]:
    """
    Narrow ``trips`` to those relevant to ``driver_id``.

    Stable: retained trips keep their input order. ``driver_id=None``
    returns the input unchanged.
    """
    trips = list(trips)
    if driver_id is None:
        return trips
    return [trip for trip in trips if is_visible_to(trip, driver_id)]
