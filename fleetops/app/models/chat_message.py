"""
Chat message database model.

Messages flow between a fleet manager and a driver or maintenance person.
Photo messages reference an attachment by durable URL only.
"""

from sqlalchemy import Column, String, Text, Boolean, Enum
from fleetops.app.db.session import Base
import enum


class MessageStatus(str, enum.Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class RecipientType(str, enum.Enum):
    DRIVER = "driver"
    MAINTENANCE = "maintenance"


class ChatMessage(Base):
    """Chat message between a fleet manager and one counterpart."""
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True)

    fleet_manager_id = Column(String(36), nullable=False, index=True)
    recipient_id = Column(String(36), nullable=False, index=True)
    recipient_type = Column(String(20), nullable=False)
    # Role of the author; recipient_type alone does not say who wrote it
    sender_role = Column(String(32), nullable=False)

    message_text = Column(Text, nullable=False)
    status = Column(
        Enum(MessageStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=MessageStatus.SENT,
        nullable=False
    )
    attachment_url = Column(Text, nullable=True)
    attachment_type = Column(String(64), nullable=True)

    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, fleet_manager={self.fleet_manager_id}, recipient={self.recipient_id})>"
