"""
Notification database model.

One row per triggering event. Trip/vehicle/driver/fleet manager references
are weak (ids only); removing a trip leaves its notifications in place.
"""

from sqlalchemy import Column, String, Text, Boolean, JSON, Enum
from fleetops.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    """Closed set of operational events a notification can describe."""
    TRIP_STARTED = "trip_started"
    TRIP_COMPLETED = "trip_completed"
    PRE_INSPECTION_ISSUE = "pre_inspection_issue"
    POST_INSPECTION_ISSUE = "post_inspection_issue"
    VEHICLE_ISSUE = "vehicle_issue"
    TRIP_DELAYED = "trip_delayed"
    LOCATION_UPDATE = "location_update"
    ISSUE_REPORT_SUBMITTED = "issue_report_submitted"
    FUEL_BILL_SUBMITTED = "fuel_bill_submitted"
    CHAT_MESSAGE = "chat_message"
    EMERGENCY = "emergency"
    MAINTENANCE = "maintenance"
    ARRIVED_AT_PICKUP = "arrived_at_pickup"
    LEFT_PICKUP = "left_pickup"
    ARRIVED_AT_DROPOFF = "arrived_at_dropoff"
    LEFT_DROPOFF = "left_dropoff"


class Notification(Base):
    """
    In-App Notification.

    ``message`` is rendered when the event happens and never re-derived.
    ``metadata`` holds only the keys relevant to ``type``.
    """
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)

    # Content
    type = Column(
        Enum(NotificationType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        index=True
    )
    message = Column(Text, nullable=False)
    metadata_payload = Column("metadata", JSON, nullable=True)

    # Associations
    trip_id = Column(String(36), nullable=True, index=True)
    vehicle_id = Column(String(36), nullable=True)
    driver_id = Column(String(36), nullable=True, index=True)
    fleet_manager_id = Column(String(36), nullable=True, index=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)

    # Timestamps (string-encoded)
    created_at = Column(String(40), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', trip={self.trip_id})>"
