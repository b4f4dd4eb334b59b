"""
Profile endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from bluecarbon.core.database import get_session
from bluecarbon.core.exceptions import NotFoundError
from bluecarbon.core.security import Actor, Identity, get_current_actor, get_identity
from bluecarbon.models.profile import ProfileCreate, ProfileRead, ProfileRoleUpdate, UserRole
from bluecarbon.handlers.profiles import assign_role, get_profile, list_profiles, register_profile

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("", response_model=ProfileRead, status_code=status.HTTP_201_CREATED)
async def register_profile_endpoint(
    profile: ProfileCreate,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session)
):
    """Register the caller's profile (role ngo, community or public)."""
    return await register_profile(session, identity, profile)


@router.get("/me", response_model=ProfileRead)
async def my_profile_endpoint(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session)
):
    """Get the caller's profile."""
    profile = await get_profile(session, identity.user_id)
    if not profile:
        raise NotFoundError("No profile registered for this account", context={"user_id": identity.user_id})
    return profile


@router.get("", response_model=List[ProfileRead])
async def list_profiles_endpoint(
    role: Optional[UserRole] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """List all profiles (admin only)."""
    return await list_profiles(session, actor, role)


@router.patch("/{user_id}/role", response_model=ProfileRead)
async def assign_role_endpoint(
    user_id: str,
    update: ProfileRoleUpdate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Assign a role to a user (admin only)."""
    return await assign_role(session, actor, user_id, update.role)
