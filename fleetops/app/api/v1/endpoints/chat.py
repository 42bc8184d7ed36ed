"""
Chat API Endpoints.

Conversations between a fleet manager and a driver or maintenance person,
including photo messages.
"""

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile, status

from fleetops.app.core.dependencies import get_chat_service
from fleetops.app.core.guards import require_any_user
from fleetops.app.models.chat_message import RecipientType
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.chat import ChatMessageCreate, ChatMessageResponse, ConversationResponse
from fleetops.app.services.chat_service import ChatService

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("/{counterpart_id}/messages", response_model=ConversationResponse)
async def list_messages(
    counterpart_id: str = Path(..., description="The other party's user ID"),
    actor: Actor = Depends(require_any_user),
    service: ChatService = Depends(get_chat_service),
):
    messages = await service.list_conversation(actor, counterpart_id)
    return ConversationResponse(counterpart_id=counterpart_id, messages=messages)


@router.post("/{counterpart_id}/messages", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: ChatMessageCreate,
    counterpart_id: str = Path(..., description="The other party's user ID"),
    actor: Actor = Depends(require_any_user),
    service: ChatService = Depends(get_chat_service),
):
    """Send a text message and return the refreshed conversation."""
    messages = await service.send_message(
        actor, counterpart_id, payload.message_text, recipient_type=payload.recipient_type
    )
    return ConversationResponse(counterpart_id=counterpart_id, messages=messages)


@router.post("/{counterpart_id}/images", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def send_image(
    counterpart_id: str = Path(..., description="The other party's user ID"),
    image: UploadFile = File(...),
    recipient_type: RecipientType = Form(RecipientType.DRIVER),
    actor: Actor = Depends(require_any_user),
    service: ChatService = Depends(get_chat_service),
):
    """
    Send a photo.

    The image is re-encoded as JPEG to fit the attachment size cap and the
    message carries only its signed URL.
    """
    data = await image.read()
    messages = await service.send_image(actor, counterpart_id, data, recipient_type=recipient_type)
    return ConversationResponse(counterpart_id=counterpart_id, messages=messages)


@router.patch("/messages/{message_id}/read", response_model=ChatMessageResponse)
async def mark_message_read(
    message_id: str = Path(...),
    actor: Actor = Depends(require_any_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.mark_read(message_id, actor)
