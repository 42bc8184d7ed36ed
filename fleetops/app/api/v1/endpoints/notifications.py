"""
Notification API Endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query

from fleetops.app.core.dependencies import get_notification_service
from fleetops.app.core.guards import require_any_user
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.notification import NotificationListResponse, NotificationResponse
from fleetops.app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: Optional[int] = Query(None, ge=1, le=200),
    actor: Actor = Depends(require_any_user),
    service: NotificationService = Depends(get_notification_service),
):
    """List current user's notifications, newest first."""
    notifications = await service.list_for_user(actor, unread_only=unread_only, limit=limit)
    unread = await service.unread_count(actor)
    return NotificationListResponse(notifications=notifications, unread_count=unread)


@router.patch("/read-all")
async def mark_all_notifications_read(
    actor: Actor = Depends(require_any_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Mark all notifications as read."""
    count = await service.mark_all_read(actor)
    return {"status": "success", "count": count}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str = Path(...),
    actor: Actor = Depends(require_any_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Mark a specific notification as read."""
    return await service.mark_read(notification_id, actor)
