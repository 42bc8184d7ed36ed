"""
Notification Schemas.
"""

import json
from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional
from fleetops.app.models.notification import NotificationType
from fleetops.app.services.timestamps import parse_timestamp


class NotificationMetadata(BaseModel):
    """
    Sparse event details. Which keys are set depends on the notification
    type; unset keys are omitted from storage entirely.
    """
    start_point: Optional[str] = None
    end_point: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    distance_km: Optional[str] = None
    inspection_time: Optional[str] = None
    issue: Optional[str] = None
    report_time: Optional[str] = None
    reason: Optional[str] = None
    delay_time: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    update_time: Optional[str] = None
    fuel_amount: Optional[str] = None
    submission_time: Optional[str] = None

    def to_payload(self) -> Optional[Dict[str, str]]:
        payload = self.model_dump(exclude_none=True)
        return payload or None


class NotificationCreate(BaseModel):
    """A fully rendered notification, ready for a single insert."""
    id: str
    type: NotificationType
    message: str
    metadata: Optional[NotificationMetadata] = None
    trip_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    fleet_manager_id: Optional[str] = None
    created_at: str

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "metadata": self.metadata.to_payload() if self.metadata else None,
            "trip_id": self.trip_id,
            "vehicle_id": self.vehicle_id,
            "driver_id": self.driver_id,
            "fleet_manager_id": self.fleet_manager_id,
            "is_read": False,
            "created_at": self.created_at,
        }


class NotificationResponse(BaseModel):
    id: str
    type: NotificationType
    message: str
    metadata: Optional[Dict[str, str]] = None
    trip_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    fleet_manager_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "NotificationResponse":
        data = dict(row)
        metadata = data.get("metadata")
        # Early writers stored metadata as a JSON-encoded string
        if isinstance(metadata, str):
            metadata = json.loads(metadata) if metadata else None
        data["metadata"] = metadata or None
        data["created_at"] = parse_timestamp(data["created_at"])
        return cls(**data)


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
