"""
Trip database model.

Trips are created by Fleet Managers and executed by one or two drivers.
Timestamp columns hold strings: historical writers emitted several
serializations, so rows are decoded through the timestamp parser.
"""

from sqlalchemy import Column, String, Text, Boolean, Float, Enum
from fleetops.app.db.session import Base
from fleetops.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    A trip binds a vehicle and up to two drivers to a pickup/destination pair.
    Rows are never hard-deleted; ``is_deleted`` hides them from listings.
    """
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True)

    # Route
    destination = Column(String(255), nullable=False)
    pickup = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    start_latitude = Column(Float, nullable=True)
    start_longitude = Column(Float, nullable=True)
    end_latitude = Column(Float, nullable=True)
    end_longitude = Column(Float, nullable=True)
    estimated_distance = Column(Float, nullable=True)  # km
    estimated_time = Column(Float, nullable=True)  # hours

    # Status and inspection gates
    trip_status = Column(
        Enum(TripStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=TripStatus.PENDING,
        nullable=False,
        index=True
    )
    has_completed_pre_trip = Column(Boolean, default=False, nullable=False)
    has_completed_post_trip = Column(Boolean, default=False, nullable=False)

    # Assignment
    vehicle_id = Column(String(36), nullable=True, index=True)
    driver_id = Column(String(36), nullable=True, index=True)
    secondary_driver_id = Column(String(36), nullable=True, index=True)
    fleet_manager_id = Column(String(36), nullable=True, index=True)

    # Timestamps (string-encoded)
    start_time = Column(String(40), nullable=True)
    end_time = Column(String(40), nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    def __repr__(self):
        return f"<Trip(id={self.id}, destination='{self.destination}', status='{self.trip_status}')>"
