"""
Driver Trip Execution Schemas.

Request/response models for inspections, status changes, location
samples, operational reports and the delivery receipt.
"""

import enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from fleetops.app.models.notification import NotificationType
from fleetops.app.models.trip_enums import GeofenceTransition, GeofenceZone, TripStatus


class InspectionPhase(str, enum.Enum):
    PRE_TRIP = "pre_trip"
    POST_TRIP = "post_trip"


class InspectionRecord(BaseModel):
    """Schema for a completed vehicle inspection."""
    phase: InspectionPhase
    issues: Optional[str] = Field(None, max_length=2000, description="Problems found, if any")


class StatusChange(BaseModel):
    status: TripStatus


class TripAssignment(BaseModel):
    driver_id: str
    vehicle_id: str
    secondary_driver_id: Optional[str] = None


class LocationRecord(BaseModel):
    """Schema for recording a GPS sample."""
    latitude: float = Field(..., ge=-90, le=90, description="Latitude")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude")
    broadcast: bool = Field(False, description="Also notify the fleet manager of the new position")


class GeofenceCrossing(BaseModel):
    zone: GeofenceZone
    transition: GeofenceTransition
    notification_id: str


class LocationRecordResponse(BaseModel):
    """Response for location recording."""
    trip_id: str
    recorded: bool = True
    crossings: List[GeofenceCrossing] = []
    location_notification_id: Optional[str] = None


class ReportKind(str, enum.Enum):
    VEHICLE_ISSUE = "vehicle-issue"
    DELAY = "delay"
    FUEL_BILL = "fuel-bill"
    EMERGENCY = "emergency"
    MAINTENANCE = "maintenance"
    ISSUE = "issue"


REPORT_NOTIFICATION_TYPES = {
    ReportKind.VEHICLE_ISSUE: NotificationType.VEHICLE_ISSUE,
    ReportKind.DELAY: NotificationType.TRIP_DELAYED,
    ReportKind.FUEL_BILL: NotificationType.FUEL_BILL_SUBMITTED,
    ReportKind.EMERGENCY: NotificationType.EMERGENCY,
    ReportKind.MAINTENANCE: NotificationType.MAINTENANCE,
    ReportKind.ISSUE: NotificationType.ISSUE_REPORT_SUBMITTED,
}


class OperationalReport(BaseModel):
    """
    A driver-filed report about a trip.

    Which fields are needed depends on the report kind: ``issue`` for
    vehicle issues, maintenance and issue reports, ``reason`` for delays,
    ``fuel_amount`` for fuel bills. Emergencies take any of them.
    """
    issue: Optional[str] = Field(None, max_length=2000)
    reason: Optional[str] = Field(None, max_length=2000)
    fuel_amount: Optional[float] = Field(None, ge=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class ReportResponse(BaseModel):
    trip_id: str
    type: NotificationType
    notification_id: str


class DeliveryReceipt(BaseModel):
    """Proof of delivery for a completed trip."""
    trip_id: str
    status: TripStatus
    pickup: Optional[str] = None
    destination: str
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    secondary_driver_id: Optional[str] = None
    start_time: Optional[datetime] = None
    delivered_at: datetime
    distance_km: Optional[str] = None
    post_trip_inspection_completed: bool
    issued_at: datetime
