"""
JWT token utilities for authentication and signed attachment links.

This module provides functions for encoding and decoding JWT tokens.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fleetops.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data payload to encode in the token (should include: sub, user_id, role)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "username",
            "user_id": "0b6c...",
            "role": "driver",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    return encoded_jwt


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded token payload if valid (includes: sub, user_id, role, exp), None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError:
        return None


def create_blob_token(bucket: str, key: str, ttl_seconds: int) -> str:
    """Sign a download grant for one stored object."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    claims = {"scope": "blob", "bucket": bucket, "key": key, "exp": expire}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def verify_blob_token(token: str, bucket: str, key: str) -> bool:
    """True if the token is unexpired and grants exactly this object."""
    payload = decode_access_token(token)
    if payload is None or payload.get("scope") != "blob":
        return False
    return payload.get("bucket") == bucket and payload.get("key") == key
