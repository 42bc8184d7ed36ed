"""
Trip-related enumerations.

Wire values match the ``trip_status`` column written by earlier clients.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    PENDING = "upcoming"  # Created, awaiting driver/vehicle assignment
    ASSIGNED = "assigned"  # Driver and vehicle assigned, not started
    IN_PROGRESS = "current"  # Driver has started
    DELIVERED = "delivered"  # Arrived and post-trip inspection done


class GeofenceZone(str, enum.Enum):
    """Circular zones monitored around a trip's endpoints."""
    PICKUP = "pickup"
    DROPOFF = "dropoff"


class GeofenceTransition(str, enum.Enum):
    ENTERED = "entered"
    EXITED = "exited"
