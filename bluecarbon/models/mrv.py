"""
MRV submission model - monitoring data tied to a project and its verification status.
"""

from sqlalchemy import JSON
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, Dict, Any, TYPE_CHECKING
from datetime import date, datetime
from enum import Enum

from bluecarbon.models.types import enum_type
from bluecarbon.utils.time import utc_now, utc_today

if TYPE_CHECKING:
    from bluecarbon.models.project import Project


class VerificationStatus(str, Enum):
    """MRV verification status."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DataSource(str, Enum):
    """Where the monitoring data came from."""
    CSV = "csv"
    EXCEL = "excel"
    FILE_UPLOAD = "file_upload"
    MANUAL = "manual"
    SENSOR = "sensor"
    OTHER = "other"


class MRVSubmissionBase(SQLModel):
    """Base MRV submission schema."""
    project_id: int = Field(..., foreign_key="projects.id", index=True)
    submission_date: date = Field(default_factory=utc_today)
    data_source: DataSource = Field(default=DataSource.MANUAL, sa_type=enum_type(DataSource, "data_source"))
    carbon_measurement: Optional[float] = Field(
        default=None,
        description="Measured carbon in tonnes CO2e",
        ge=0
    )
    biomass_data: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    notes: Optional[str] = Field(default=None)


class MRVSubmission(MRVSubmissionBase, table=True):
    """MRV submission database table."""
    __tablename__ = "mrv_submissions"

    id: Optional[int] = Field(default=None, primary_key=True)
    data_summary: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    file_paths: Optional[List[str]] = Field(default=None, sa_type=JSON)
    submitted_by: str = Field(...)
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.PENDING,
        sa_type=enum_type(VerificationStatus, "verification_status"),
        index=True
    )
    verified_by: Optional[str] = Field(default=None)
    verified_at: Optional[datetime] = Field(default=None)
    reviewed_by: Optional[str] = Field(default=None)
    reviewed_at: Optional[datetime] = Field(default=None)
    review_notes: Optional[str] = Field(default=None)
    blockchain_hash: Optional[str] = Field(default=None)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)

    # Relationship
    project: "Project" = Relationship(back_populates="submissions")


class MRVSubmissionCreate(MRVSubmissionBase):
    """Schema for creating an MRV submission."""
    pass


class MRVSubmissionRead(MRVSubmissionBase):
    """Schema for reading an MRV submission."""
    id: int
    data_summary: Optional[Dict[str, Any]] = None
    file_paths: Optional[List[str]] = None
    submitted_by: str
    verification_status: VerificationStatus
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    blockchain_hash: Optional[str] = None
    version: int
    created_at: datetime


class ReviewDecision(str, Enum):
    """Admin decision on a pending submission."""
    VERIFIED = "verified"
    REJECTED = "rejected"


class MRVReviewRequest(SQLModel):
    """Schema for an admin review of an MRV submission."""
    decision: ReviewDecision
    notes: Optional[str] = None
    expected_version: Optional[int] = None
