"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleetops.app.api.v1.endpoints import (
    trip_creation, driver_visibility, trip_execution,
    notifications, chat, attachments
)

router = APIRouter()

# Fleet manager trip management
router.include_router(trip_creation.router)

# Driver trips and execution
router.include_router(driver_visibility.router)
router.include_router(trip_execution.router)

# Notifications inbox
router.include_router(notifications.router)

# Chat and attachment downloads
router.include_router(chat.router)
router.include_router(attachments.router)
