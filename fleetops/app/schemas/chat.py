"""
Chat Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional
from fleetops.app.models.chat_message import MessageStatus, RecipientType
from fleetops.app.models.enums import UserRole
from fleetops.app.services.timestamps import parse_timestamp


class Attachment(BaseModel):
    """A stored blob as chat messages see it: a durable URL and its MIME type."""
    url: str
    content_type: str


class ChatMessageCreate(BaseModel):
    message_text: str = Field(..., min_length=1, max_length=4000)
    recipient_type: RecipientType = RecipientType.DRIVER


class ChatMessageResponse(BaseModel):
    id: str
    fleet_manager_id: str
    recipient_id: str
    recipient_type: RecipientType
    sender_role: UserRole
    message_text: str
    status: MessageStatus
    attachment: Optional[Attachment] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChatMessageResponse":
        attachment = None
        if row.get("attachment_url"):
            attachment = Attachment(url=row["attachment_url"], content_type=row.get("attachment_type") or "image/jpeg")
        return cls(
            id=row["id"],
            fleet_manager_id=row["fleet_manager_id"],
            recipient_id=row["recipient_id"],
            recipient_type=row["recipient_type"],
            sender_role=row["sender_role"],
            message_text=row["message_text"],
            status=row["status"],
            attachment=attachment,
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )


class ConversationResponse(BaseModel):
    counterpart_id: str
    messages: List[ChatMessageResponse]
