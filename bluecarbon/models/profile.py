"""
Profile model - a registry user and the role that gates admin actions.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from bluecarbon.models.types import enum_type
from bluecarbon.utils.time import utc_now


class UserRole(str, Enum):
    """Registry roles."""
    ADMIN = "admin"
    NGO = "ngo"
    COMMUNITY = "community"
    PUBLIC = "public"


class ProfileBase(SQLModel):
    """Base profile schema."""
    full_name: str = Field(..., min_length=1, max_length=200)
    organization: Optional[str] = Field(default=None, max_length=200)
    contact_email: Optional[str] = Field(default=None, max_length=320)
    phone: Optional[str] = Field(default=None, max_length=50)


class Profile(ProfileBase, table=True):
    """Profile database table."""
    __tablename__ = "profiles"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(..., unique=True, index=True, description="Subject of the auth service token")
    role: UserRole = Field(default=UserRole.PUBLIC, sa_type=enum_type(UserRole, "user_role"))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProfileCreate(ProfileBase):
    """Schema for registering the caller's own profile."""
    role: UserRole = UserRole.COMMUNITY


class ProfileRoleUpdate(SQLModel):
    """Schema for an admin assigning a role."""
    role: UserRole


class ProfileRead(ProfileBase):
    """Schema for reading a profile."""
    id: int
    user_id: str
    role: UserRole
    created_at: datetime
    updated_at: datetime
