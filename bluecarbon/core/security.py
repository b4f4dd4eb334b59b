"""
Caller identity.

Tokens are issued by the external auth service; this module only verifies
them and resolves the caller's role from their profile. The resulting
`Actor` is passed explicitly to every handler.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from bluecarbon.core.config import get_settings
from bluecarbon.core.database import get_session
from bluecarbon.core.exceptions import AuthenticationError, AuthorizationError
from bluecarbon.models.profile import Profile, UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    """Authenticated subject as asserted by the auth service."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None


class Actor(Identity):
    """Identity plus the role that gates registry actions."""
    role: UserRole = UserRole.PUBLIC

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def decode_token(token: str) -> Identity:
    """Verify a bearer token and extract the subject."""
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except jwt.PyJWTError as e:
        logger.warning("Rejected bearer token: %s", e)
        raise AuthenticationError("Invalid or expired token")

    subject = claims.get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")
    return Identity(user_id=str(subject), email=claims.get("email"))


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """Dependency for the authenticated caller (profile not required)."""
    if credentials is None:
        raise AuthenticationError("Authentication required")
    return decode_token(credentials.credentials)


async def resolve_actor(session: AsyncSession, identity: Identity) -> Actor:
    """Attach the caller's profile role; callers without a profile act as public."""
    result = await session.execute(select(Profile).where(Profile.user_id == identity.user_id))
    profile = result.scalars().first()
    role = profile.role if profile else UserRole.PUBLIC
    return Actor(user_id=identity.user_id, email=identity.email, role=role)


async def get_current_actor(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    """Dependency for the authenticated caller with their role."""
    return await resolve_actor(session, identity)


def require_admin(actor: Actor, action: str) -> None:
    """Raise AuthorizationError unless the actor is an admin."""
    if not actor.is_admin:
        logger.warning("Non-admin %s attempted %s", actor.user_id, action)
        raise AuthorizationError(f"Only an admin can {action}", context={"action": action})
