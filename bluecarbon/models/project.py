"""
Project model - a blue carbon restoration site and its lifecycle status.
"""

from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import date, datetime
from enum import Enum

from bluecarbon.models.types import enum_type
from bluecarbon.utils.time import utc_now

if TYPE_CHECKING:
    from bluecarbon.models.mrv import MRVSubmission
    from bluecarbon.models.credit import Credit


class ProjectStatus(str, Enum):
    """Project lifecycle status."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    COMPLETED = "completed"


class ProjectType(str, Enum):
    """Ecosystem being restored."""
    MANGROVE = "mangrove_restoration"
    SEAGRASS = "seagrass_restoration"
    SALT_MARSH = "salt_marsh_restoration"


class ProjectBase(SQLModel):
    """Base project schema."""
    name: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None)
    project_type: ProjectType = Field(..., sa_type=enum_type(ProjectType, "project_type"))
    area_hectares: float = Field(..., description="Restored area in hectares")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=500)
    projected_sequestration: Optional[float] = Field(
        default=None,
        description="Projected sequestration in tonnes CO2e",
        ge=0
    )
    baseline_carbon: Optional[float] = Field(default=None, description="Baseline carbon stock in tonnes")
    start_date: Optional[date] = Field(default=None)
    end_date: Optional[date] = Field(default=None)


class Project(ProjectBase, table=True):
    """Project database table."""
    __tablename__ = "projects"

    id: Optional[int] = Field(default=None, primary_key=True)
    status: ProjectStatus = Field(
        default=ProjectStatus.SUBMITTED,
        sa_type=enum_type(ProjectStatus, "project_status"),
        index=True
    )
    owner_id: str = Field(..., index=True)
    approved_by: Optional[str] = Field(default=None)
    approved_at: Optional[datetime] = Field(default=None)
    reviewed_by: Optional[str] = Field(default=None)
    reviewed_at: Optional[datetime] = Field(default=None)
    review_notes: Optional[str] = Field(default=None)
    blockchain_hash: Optional[str] = Field(default=None)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships
    submissions: List["MRVSubmission"] = Relationship(back_populates="project")
    credits: List["Credit"] = Relationship(back_populates="project")


class ProjectCreate(ProjectBase):
    """Schema for creating a project. Only draft or submitted are accepted as initial status."""
    status: ProjectStatus = ProjectStatus.SUBMITTED


class ProjectRead(ProjectBase):
    """Schema for reading a project."""
    id: int
    status: ProjectStatus
    owner_id: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    blockchain_hash: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class ProjectAction(str, Enum):
    """Lifecycle actions a caller can request."""
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    ACTIVATE = "activate"
    COMPLETE = "complete"


class ProjectTransitionRequest(SQLModel):
    """Schema for a lifecycle action on a project."""
    action: ProjectAction
    notes: Optional[str] = None
    expected_version: Optional[int] = None


class PublicProjectRead(SQLModel):
    """Public projection of an approved project; carries no owner or reviewer identity."""
    id: int
    name: str
    description: Optional[str] = None
    project_type: ProjectType
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    area_hectares: float
    projected_sequestration: Optional[float] = None
    status: ProjectStatus
    created_at: datetime
