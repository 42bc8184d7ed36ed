"""
Identity schemas.

The authenticated caller as seen by services, and the test-token response.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict
from fleetops.app.models.enums import UserRole


class Actor(BaseModel):
    """
    The user on whose behalf an operation runs.

    Services receive this explicitly; they never look up the current user.
    """
    user_id: str = Field(..., description="Opaque user id")
    role: UserRole = Field(..., description="User role")

    @classmethod
    def from_token(cls, payload: Dict[str, Any]) -> "Actor":
        return cls(user_id=str(payload["user_id"]), role=UserRole(payload["role"]))

    @property
    def is_fleet_manager(self) -> bool:
        return self.role == UserRole.FLEET_MANAGER


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by the test-token endpoint.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: str = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    role: UserRole = Field(..., description="User role")
