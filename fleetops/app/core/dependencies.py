"""
Dependencies for FastAPI.

Authentication plus the providers that assemble the store, blob store and
services per request. Tests swap ``get_store`` and ``get_blob_store``
through ``app.dependency_overrides``.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fleetops.app.core.config import settings
from fleetops.app.core.jwt import decode_access_token
from fleetops.app.db.session import AsyncSessionLocal
from fleetops.app.db.store import SQLAlchemyStore, Store
from fleetops.app.services.attachments import AttachmentProvisioner, BlobStore, LocalBlobStore
from fleetops.app.services.chat_service import ChatService
from fleetops.app.services.geofence import GeofenceMonitor
from fleetops.app.services.notification_service import NotificationDispatcher, NotificationService
from fleetops.app.services.operational_reports import OperationalReports
from fleetops.app.services.trip_lifecycle import TripLifecycle
from fleetops.app.services.trip_repository import TripRepository

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Validates the token signature and expiry and returns its payload.
    User records live outside this service, so no further lookup is made.

    Raises:
        HTTPException: 401 if the token is invalid or lacks a user id/role
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("user_id") or not payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


def get_store() -> Store:
    return SQLAlchemyStore(
        AsyncSessionLocal,
        retry_attempts=settings.store_retry_attempts,
        retry_base_delay=settings.store_retry_base_delay,
    )


def get_blob_store() -> BlobStore:
    return LocalBlobStore(settings.blob_root, settings.public_base_url)


def get_dispatcher(store: Store = Depends(get_store)) -> NotificationDispatcher:
    return NotificationDispatcher(store)


def get_trip_lifecycle(
    store: Store = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> TripLifecycle:
    return TripLifecycle(TripRepository(store), dispatcher)


def get_notification_service(store: Store = Depends(get_store)) -> NotificationService:
    return NotificationService(store, list_limit=settings.notification_list_limit)


def get_attachment_provisioner(blob_store: BlobStore = Depends(get_blob_store)) -> AttachmentProvisioner:
    return AttachmentProvisioner(
        blob_store,
        bucket=settings.attachment_bucket,
        max_bytes=settings.attachment_max_bytes,
        allowed_mime_types=settings.attachment_allowed_mime_types,
        url_ttl_seconds=settings.attachment_url_ttl_seconds,
    )


def get_chat_service(
    store: Store = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    provisioner: AttachmentProvisioner = Depends(get_attachment_provisioner),
) -> ChatService:
    return ChatService(store, dispatcher, provisioner)


def get_geofence_monitor(
    store: Store = Depends(get_store),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> GeofenceMonitor:
    return GeofenceMonitor(store, lifecycle, dispatcher, radius_meters=settings.geofence_radius_meters)


def get_operational_reports(
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> OperationalReports:
    return OperationalReports(lifecycle, dispatcher)
