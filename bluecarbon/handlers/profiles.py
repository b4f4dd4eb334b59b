"""
Profile handlers.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, or_

from bluecarbon.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from bluecarbon.core.security import Actor, Identity, require_admin
from bluecarbon.handlers.common import record_audit
from bluecarbon.models.profile import Profile, ProfileCreate, UserRole
from bluecarbon.utils.time import utc_now

logger = logging.getLogger(__name__)


async def get_profile(session: AsyncSession, user_id: str) -> Optional[Profile]:
    """Get profile by auth user id."""
    result = await session.execute(select(Profile).where(Profile.user_id == user_id))
    return result.scalars().first()


async def resolve_profile(session: AsyncSession, user_ref: str) -> Profile:
    """Find a profile by user id or contact email."""
    ref = user_ref.strip()
    if not ref:
        raise ValidationError("Recipient is required")
    result = await session.execute(
        select(Profile).where(or_(Profile.user_id == ref, Profile.contact_email == ref))
    )
    profile = result.scalars().first()
    if profile is None:
        raise NotFoundError(f"No registered user matches '{ref}'", context={"user": ref})
    return profile


async def register_profile(
    session: AsyncSession,
    identity: Identity,
    profile_data: ProfileCreate
) -> Profile:
    """Create the caller's own profile. The admin role is never self-assigned."""
    if profile_data.role == UserRole.ADMIN:
        raise AuthorizationError("The admin role is assigned by an existing admin")
    if not profile_data.full_name.strip():
        raise ValidationError("full_name is required", context={"field": "full_name"})
    if await get_profile(session, identity.user_id):
        raise ConflictError("Profile already exists", context={"user_id": identity.user_id})

    profile = Profile(
        **profile_data.model_dump(),
        user_id=identity.user_id,
    )
    if profile.contact_email is None:
        profile.contact_email = identity.email
    session.add(profile)
    await session.flush()

    record_audit(
        session,
        action="profile_created",
        entity_type="profile",
        entity_id=profile.id,
        actor_id=identity.user_id,
        payload={"user_id": identity.user_id, "role": profile.role.value},
    )
    await session.commit()
    await session.refresh(profile)

    logger.info("Registered profile %s as %s", identity.user_id, profile.role.value)
    return profile


async def list_profiles(session: AsyncSession, actor: Actor, role: Optional[UserRole] = None) -> List[Profile]:
    """List profiles, newest first (admin only)."""
    require_admin(actor, "list users")
    statement = select(Profile)
    if role:
        statement = statement.where(Profile.role == role)
    statement = statement.order_by(Profile.created_at.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def assign_role(session: AsyncSession, actor: Actor, user_id: str, role: UserRole) -> Profile:
    """Change a user's role (admin only)."""
    require_admin(actor, "assign roles")
    profile = await get_profile(session, user_id)
    if profile is None:
        raise NotFoundError(f"Profile {user_id} not found", context={"user_id": user_id})

    previous = profile.role
    profile.role = role
    profile.updated_at = utc_now()
    record_audit(
        session,
        action="role_assigned",
        entity_type="profile",
        entity_id=profile.id,
        actor_id=actor.user_id,
        payload={"user_id": user_id, "from": previous.value, "to": role.value},
    )
    await session.commit()
    await session.refresh(profile)

    logger.info("Admin %s changed role of %s: %s -> %s", actor.user_id, user_id, previous.value, role.value)
    return profile
