"""Access-token verification and member lookup.

Tokens are HS256 JWTs issued by the identity provider: ``sub`` is the member
id and ``aud`` the configured audience.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import HTTPException, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from garden.config import settings
from garden.models import User

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def create_access_token(user_id: UUID, expires_minutes: int = 60) -> str:
    """Mint an access token (service-to-service calls and local testing)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "aud": settings.JWT_AUDIENCE,
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=_ALGORITHM)


def verify_token(token: str) -> dict:
    """Decode and validate an access token.

    Raises HTTPException(401) if the token is invalid, expired, issued for
    another audience, or has no subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no subject",
        )

    return payload


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    """Return the active member with *user_id*. Raises 404 otherwise."""
    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
