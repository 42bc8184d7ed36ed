"""
Geofence event database model.

Append-only log of zone entries/exits per trip; the latest row per
(trip, zone) is the current zone state.
"""

from sqlalchemy import Column, String, Text, Float, Enum
from fleetops.app.db.session import Base
from fleetops.app.models.trip_enums import GeofenceZone, GeofenceTransition


class GeofenceEvent(Base):
    __tablename__ = "geofence_events"

    id = Column(String(36), primary_key=True)
    trip_id = Column(String(36), nullable=False, index=True)
    zone = Column(
        Enum(GeofenceZone, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False
    )
    transition = Column(
        Enum(GeofenceTransition, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(String(40), nullable=False)

    def __repr__(self):
        return f"<GeofenceEvent(trip={self.trip_id}, zone='{self.zone}', transition='{self.transition}')>"
