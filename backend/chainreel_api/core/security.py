"""
Security utilities for ChainReel.

Verifies JWT access tokens issued by the platform's sign-in service. The
token may arrive in the ``auth_token`` cookie or as a Bearer header; the
``sub`` claim (or the legacy ``userId`` claim) identifies the caller.
User accounts live with the issuer, so identity is an opaque string here.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from chainreel_api.core.config import get_settings

ALGORITHM = "HS256"
AUTH_COOKIE_NAME = "auth_token"

# HTTP Bearer token scheme; absence is allowed because the cookie may carry the token
security = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User ID to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.access_token_expire_hours)

    expire = datetime.utcnow() + expires_delta
    to_encode = {
        "sub": user_id,
        "exp": expire,
        "iat": datetime.utcnow(),
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])


def extract_user_id(payload: dict) -> Optional[str]:
    """User identity from a decoded token, or None if it carries none."""
    user_id = payload.get("sub") or payload.get("userId")
    if user_id is None:
        return None
    return str(user_id)


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    FastAPI dependency returning the authenticated user's id.

    The cookie takes precedence over the Authorization header.

    Raises:
        HTTPException: 401 if no valid token is present
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "message": "Invalid or expired token"},
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise credentials_exception

    try:
        payload = decode_token(token)
    except JWTError:
        raise credentials_exception

    user_id = extract_user_id(payload)
    if user_id is None:
        raise credentials_exception

    return user_id
