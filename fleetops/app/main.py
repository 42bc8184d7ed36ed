"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Trip Coordinator.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from fleetops.app.core.config import settings
from fleetops.app.api.v1.router import router as api_v1_router
from fleetops.app.core.dependencies import get_current_user
from fleetops.app.core.jwt import create_access_token
from fleetops.app.core.observability import ObservabilityMiddleware, configure_logging
from fleetops.app.db.session import engine, Base
from fleetops.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from fleetops.app.models.enums import UserRole
from fleetops.app.schemas.auth import TokenResponse

# Import models to ensure they are registered with Base
from fleetops.app.models.trip import Trip
from fleetops.app.models.notification import Notification
from fleetops.app.models.chat_message import ChatMessage
from fleetops.app.models.geofence_event import GeofenceEvent

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Trip lifecycle and notification backend for delivery fleets",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to the Fleet Trip Coordinator API",
        "docs": "/docs",
        "health": "/health",
    }


# User accounts are managed elsewhere; this issues tokens for local use
@app.post("/auth/test-token", response_model=TokenResponse, tags=["Authentication"])
async def generate_test_token(
    user_id: str = "fleet-manager-1",
    username: str = "test_user",
    role: UserRole = UserRole.FLEET_MANAGER,
):
    """
    Generate a test JWT token for the given user id and role.

    Only served in debug mode; otherwise the route answers 404.
    """
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")
    token = create_access_token(data={"sub": username, "user_id": user_id, "role": role.value})
    return TokenResponse(access_token=token, user_id=user_id, username=username, role=role)


@app.get("/auth/protected", tags=["Authentication"])
async def protected_route(current_user: dict = Depends(get_current_user)):
    """
    Protected route that requires valid JWT authentication.

    Returns 401 if token is missing or invalid.
    """
    return {
        "message": "Access granted to protected resource",
        "authenticated_user": current_user,
    }
