"""
Trip schemas.

Records decoded from store rows, the creation payload, the partial-update
patch, and the derived board (current / upcoming / completed).
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime

from fleetops.app.models.trip_enums import TripStatus
from fleetops.app.services.timestamps import format_timestamp, parse_optional, parse_trip_timestamp

# Stored columns that cannot be cleared by a patch
_NOT_NULLABLE = {"destination", "status", "has_completed_pre_trip", "has_completed_post_trip"}


class TripRecord(BaseModel):
    """A trip as read from the store."""
    id: str
    destination: str
    pickup: Optional[str] = None
    notes: Optional[str] = None
    status: TripStatus = TripStatus.PENDING
    has_completed_pre_trip: bool = False
    has_completed_post_trip: bool = False
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    secondary_driver_id: Optional[str] = None
    fleet_manager_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_latitude: Optional[float] = None
    start_longitude: Optional[float] = None
    end_latitude: Optional[float] = None
    end_longitude: Optional[float] = None
    estimated_distance: Optional[float] = None
    estimated_time: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TripRecord":
        data = dict(row)
        data["status"] = data.pop("trip_status")
        created_at = parse_trip_timestamp(data["created_at"])
        data["created_at"] = created_at
        # Older rows may lack updated_at; fall back to creation time
        data["updated_at"] = parse_optional(data.get("updated_at"), trip=True) or created_at
        data["start_time"] = parse_optional(data.get("start_time"), trip=True)
        data["end_time"] = parse_optional(data.get("end_time"), trip=True)
        return cls(**data)

    @property
    def start_point(self) -> Optional[str]:
        """Human label for where the trip starts."""
        if self.pickup:
            return self.pickup
        if self.start_coordinate:
            return "%.5f, %.5f" % self.start_coordinate
        return None

    @property
    def end_point(self) -> Optional[str]:
        return self.destination or None

    @property
    def start_coordinate(self) -> Optional[Tuple[float, float]]:
        if self.start_latitude is None or self.start_longitude is None:
            return None
        return (self.start_latitude, self.start_longitude)

    @property
    def end_coordinate(self) -> Optional[Tuple[float, float]]:
        if self.end_latitude is None or self.end_longitude is None:
            return None
        return (self.end_latitude, self.end_longitude)

    def has_driver(self, user_id: str) -> bool:
        return user_id is not None and user_id in (self.driver_id, self.secondary_driver_id)


class TripCreate(BaseModel):
    """Schema for creating a trip. New trips always start pending."""
    destination: str = Field(..., min_length=1, max_length=255)
    pickup: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    secondary_driver_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_latitude: Optional[float] = Field(None, ge=-90, le=90)
    start_longitude: Optional[float] = Field(None, ge=-180, le=180)
    end_latitude: Optional[float] = Field(None, ge=-90, le=90)
    end_longitude: Optional[float] = Field(None, ge=-180, le=180)
    estimated_distance: Optional[float] = Field(None, ge=0)
    estimated_time: Optional[float] = Field(None, ge=0)


class TripPatch(BaseModel):
    """
    Partial update for a trip.

    Only fields explicitly present in the payload are applied; an explicit
    ``null`` clears the field, an absent field keeps its stored value.
    A ``status`` entry is validated against the lifecycle before anything
    is written.
    """
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    pickup: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    status: Optional[TripStatus] = None
    has_completed_pre_trip: Optional[bool] = None
    has_completed_post_trip: Optional[bool] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    secondary_driver_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_latitude: Optional[float] = Field(None, ge=-90, le=90)
    start_longitude: Optional[float] = Field(None, ge=-180, le=180)
    end_latitude: Optional[float] = Field(None, ge=-90, le=90)
    end_longitude: Optional[float] = Field(None, ge=-180, le=180)
    estimated_distance: Optional[float] = Field(None, ge=0)
    estimated_time: Optional[float] = Field(None, ge=0)

    def present(self) -> Dict[str, Any]:
        """Fields supplied by the caller, with their (possibly null) values."""
        return {
            field: value
            for field, value in self.model_dump(exclude_unset=True).items()
            if value is not None or field not in _NOT_NULLABLE
        }

    def apply_to(self, trip: TripRecord) -> TripRecord:
        """The record as it would look with this patch applied."""
        return trip.model_copy(update=self.present())

    def to_row(self) -> Dict[str, Any]:
        """Store-shaped patch (snake_case column names, encoded timestamps)."""
        row = {}
        for field, value in self.present().items():
            if field == "status":
                row["trip_status"] = TripStatus(value).value
            elif isinstance(value, datetime):
                row[field] = format_timestamp(value)
            else:
                row[field] = value
        return row


class TripBoard(BaseModel):
    """Derived listing buckets; recomputed on every fetch, never stored."""
    current: Optional[TripRecord] = None
    in_progress: List[TripRecord] = []
    upcoming: List[TripRecord] = []
    completed: List[TripRecord] = []


class TripListResponse(BaseModel):
    """Schema for a trip listing with its derived board."""
    trips: List[TripRecord]
    board: TripBoard
    total: int
