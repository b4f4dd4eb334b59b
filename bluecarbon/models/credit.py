"""
Carbon credit model - a serialized lot of credits minted against a project.
"""

from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime
from enum import Enum

from bluecarbon.models.types import enum_type
from bluecarbon.utils.time import utc_now, utc_today

if TYPE_CHECKING:
    from bluecarbon.models.project import Project


class CreditStatus(str, Enum):
    """Carbon credit status lifecycle."""
    ISSUED = "issued"
    TRANSFERRED = "transferred"
    RETIRED = "retired"


class RetirementReason(str, Enum):
    """Closed set of reasons a credit can be retired for."""
    VOLUNTARY_OFFSET = "voluntary_offset"
    COMPLIANCE_OBLIGATION = "compliance_obligation"
    CORPORATE_NEUTRALITY = "corporate_neutrality"
    EVENT_OFFSET = "event_offset"


class CreditBase(SQLModel):
    """Base carbon credit schema."""
    project_id: int = Field(..., foreign_key="projects.id", index=True)
    serial_number: str = Field(..., unique=True, index=True, max_length=64)
    credit_amount: float = Field(..., description="Current balance of the lot in tonnes CO2e")
    issued_amount: float = Field(..., description="Amount the lot was created with")
    vintage_year: int = Field(..., description="Year the underlying sequestration occurred")
    status: CreditStatus = Field(default=CreditStatus.ISSUED, sa_type=enum_type(CreditStatus, "credit_status"))
    current_owner_id: str = Field(..., index=True)
    issue_date: date = Field(default_factory=utc_today)
    retired_date: Optional[date] = Field(default=None)
    retirement_reason: Optional[RetirementReason] = Field(
        default=None,
        sa_type=enum_type(RetirementReason, "retirement_reason")
    )
    parent_credit_id: Optional[int] = Field(
        default=None,
        foreign_key="carbon_credits.id",
        description="Lot this one was split from by a partial transfer"
    )


class Credit(CreditBase, table=True):
    """Carbon credit database table."""
    __tablename__ = "carbon_credits"

    id: Optional[int] = Field(default=None, primary_key=True)
    issued_by: str = Field(...)
    blockchain_transaction_hash: Optional[str] = Field(default=None)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationship
    project: "Project" = Relationship(back_populates="credits")


class CreditRead(CreditBase):
    """Schema for reading a carbon credit."""
    id: int
    issued_by: str
    blockchain_transaction_hash: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class PublicCreditRead(SQLModel):
    """Public projection of a credit lot."""
    serial_number: str
    credit_amount: float
    vintage_year: int
    status: CreditStatus
    issue_date: date


class CreditIssueRequest(SQLModel):
    """Schema for issuing credits against a project."""
    project_id: int
    credit_amount: float
    vintage_year: Optional[int] = None


class CreditTransferRequest(SQLModel):
    """Schema for transferring (part of) a credit lot."""
    amount: float
    recipient: str = Field(..., description="Recipient user id or contact email")
    price_per_credit: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    expected_version: Optional[int] = None


class CreditRetireRequest(SQLModel):
    """Schema for retiring a credit lot."""
    reason: RetirementReason
    notes: Optional[str] = None
    expected_version: Optional[int] = None


class CreditTransferResult(SQLModel):
    """Outcome of a transfer: the source lot and, for partial transfers, the new lot."""
    credit: CreditRead
    transferred_credit: Optional[CreditRead] = None
    transaction_id: int
