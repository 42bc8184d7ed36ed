"""
Chat between a fleet manager and a driver or maintenance person.

Every conversation is keyed by (fleet_manager_id, recipient_id) whichever
side writes. Messages from the non-manager side also raise a chat
notification for the fleet manager.
"""

import logging
import uuid
from typing import Callable, List, Optional, Tuple

from fleetops.app.core.exceptions import ResourceNotFoundError
from fleetops.app.db.store import RowFilter, Store
from fleetops.app.models.chat_message import MessageStatus, RecipientType
from fleetops.app.models.enums import UserRole
from fleetops.app.models.notification import NotificationType
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.chat import Attachment, ChatMessageResponse
from fleetops.app.services.attachments import AttachmentProvisioner
from fleetops.app.services.notification_service import NotificationDispatcher
from fleetops.app.services.timestamps import format_timestamp, utc_now

logger = logging.getLogger("fleetops.chat")

CHAT_TABLE = "chat_messages"

PHOTO_PLACEHOLDER = "Photo"


def _conversation_key(actor: Actor, counterpart_id: str) -> Tuple[str, str]:
    """(fleet_manager_id, recipient_id) for the actor's side of a conversation."""
    if actor.is_fleet_manager:
        return actor.user_id, counterpart_id
    return counterpart_id, actor.user_id


class ChatService:

    def __init__(
        self,
        store: Store,
        dispatcher: NotificationDispatcher,
        provisioner: Optional[AttachmentProvisioner] = None,
        clock: Callable = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.provisioner = provisioner
        self.clock = clock

    async def list_conversation(self, actor: Actor, counterpart_id: str) -> List[ChatMessageResponse]:
        """Oldest first, soft-deleted messages excluded."""
        fleet_manager_id, recipient_id = _conversation_key(actor, counterpart_id)
        rows = await self.store.query(
            CHAT_TABLE,
            RowFilter(equals={"fleet_manager_id": fleet_manager_id, "recipient_id": recipient_id}),
        )
        messages = [ChatMessageResponse.from_row(row) for row in rows]
        messages.sort(key=lambda m: m.created_at)
        return messages

    async def send_message(
        self,
        actor: Actor,
        counterpart_id: str,
        text: str,
        recipient_type: RecipientType = RecipientType.DRIVER,
        attachment: Optional[Attachment] = None,
    ) -> List[ChatMessageResponse]:
        """Store a message and return the refreshed conversation."""
        fleet_manager_id, recipient_id = _conversation_key(actor, counterpart_id)
        if not actor.is_fleet_manager:
            recipient_type = RecipientType.DRIVER if actor.role == UserRole.DRIVER else RecipientType.MAINTENANCE

        draft = None
        if not actor.is_fleet_manager:
            preview = text if attachment is None else f"{PHOTO_PLACEHOLDER} from {recipient_type.value}"
            draft = self.dispatcher.build(
                NotificationType.CHAT_MESSAGE,
                actor=actor,
                text=f"New message: {preview}",
                fleet_manager_id=fleet_manager_id,
            )

        now = format_timestamp(self.clock())
        await self.store.insert(CHAT_TABLE, {
            "id": str(uuid.uuid4()),
            "fleet_manager_id": fleet_manager_id,
            "recipient_id": recipient_id,
            "recipient_type": recipient_type.value,
            "sender_role": actor.role.value,
            "message_text": text,
            "status": MessageStatus.SENT.value,
            "attachment_url": attachment.url if attachment else None,
            "attachment_type": attachment.content_type if attachment else None,
            "created_at": now,
            "updated_at": now,
            "is_deleted": False,
        })
        if draft is not None:
            await self.dispatcher.persist(draft)
        return await self.list_conversation(actor, counterpart_id)

    async def send_image(
        self,
        actor: Actor,
        counterpart_id: str,
        image: bytes,
        recipient_type: RecipientType = RecipientType.DRIVER,
    ) -> List[ChatMessageResponse]:
        """Upload the photo, then send a message that references it by URL."""
        attachment = await self.provisioner.upload_image(image)
        return await self.send_message(actor, counterpart_id, PHOTO_PLACEHOLDER, recipient_type, attachment)

    async def mark_read(self, message_id: str, actor: Actor) -> ChatMessageResponse:
        rows = await self.store.query(
            CHAT_TABLE,
            RowFilter(equals={"id": message_id}, any_of={"fleet_manager_id": actor.user_id, "recipient_id": actor.user_id}),
        )
        if not rows:
            raise ResourceNotFoundError("Message", message_id)
        stored = await self.store.update(
            CHAT_TABLE, message_id,
            {"status": MessageStatus.READ.value, "updated_at": format_timestamp(self.clock())},
        )
        return ChatMessageResponse.from_row(stored)
