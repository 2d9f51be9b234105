"""
FastAPI Dependencies
Shared dependencies for identity, database access and notifications.

Tokens are issued by the auth provider; this module only verifies them and
turns them into a user id the lifecycle services receive explicitly.
"""
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import AuthenticationError
from backend.database import get_db
from backend.models import User
from backend.schemas.auth import TokenData
from backend.services.email import get_email_sender
from backend.services.notifications import NotificationSender

# =============================================================================
# JWT Token Management
# =============================================================================

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 30

security = HTTPBearer(auto_error=False)


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token (used by tests and service-to-service calls)."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)
    return encoded_jwt


def decode_token(token: str) -> TokenData:
    """Decode and validate a JWT token."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    user_id: str = payload.get("sub")
    email: str = payload.get("email")
    exp = payload.get("exp")

    if user_id is None:
        raise JWTError("Token missing subject")
    if payload.get("type", "access") != "access":
        raise JWTError("Invalid token type")

    try:
        parsed_id = UUID(user_id)
    except ValueError as e:
        raise JWTError("Token subject is not a user id") from e

    return TokenData(
        user_id=parsed_id,
        email=email,
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )


# =============================================================================
# Database Dependency
# =============================================================================

AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Authentication Dependencies
# =============================================================================

async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: AsyncSessionDep,
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises AuthenticationError (401) if not authenticated.
    """
    if credentials is None:
        raise AuthenticationError()

    try:
        token_data = decode_token(credentials.credentials)
    except JWTError:
        raise AuthenticationError()

    # jose already rejects expired tokens; this covers tokens without exp
    if token_data.exp and token_data.exp < datetime.now(timezone.utc):
        raise AuthenticationError("Token has expired")

    result = await db.execute(
        select(User).where(User.id == token_data.user_id)
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthenticationError()

    return user


async def get_current_user_optional(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: AsyncSessionDep,
) -> Optional[User]:
    """
    Get the current user if authenticated, otherwise return None.

    Does not raise exception if not authenticated.
    """
    if credentials is None:
        return None

    try:
        token_data = decode_token(credentials.credentials)
    except JWTError:
        return None

    result = await db.execute(
        select(User).where(User.id == token_data.user_id)
    )
    return result.scalar_one_or_none()


# =============================================================================
# Notifications
# =============================================================================

def get_notification_sender() -> NotificationSender:
    """Notification sender used by request handlers (overridden in tests)."""
    return get_email_sender()


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_current_user_optional)]
SenderDep = Annotated[NotificationSender, Depends(get_notification_sender)]
