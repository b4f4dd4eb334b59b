"""
Credit transaction model - append-only history of issue/transfer/retire events.
"""

from sqlalchemy import event
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from bluecarbon.models.types import enum_type
from bluecarbon.utils.time import utc_now


class TransactionType(str, Enum):
    """Ledger event type."""
    ISSUE = "issue"
    TRANSFER = "transfer"
    RETIRE = "retire"


class CreditTransactionBase(SQLModel):
    """Base credit transaction schema."""
    credit_id: int = Field(..., foreign_key="carbon_credits.id", index=True)
    transaction_type: TransactionType = Field(..., sa_type=enum_type(TransactionType, "transaction_type"))
    amount: float = Field(..., gt=0)
    from_user_id: Optional[str] = Field(default=None, index=True)
    to_user_id: Optional[str] = Field(default=None, index=True)
    source_credit_id: Optional[int] = Field(
        default=None,
        foreign_key="carbon_credits.id",
        description="Lot a partial transfer was split from"
    )
    price_per_credit: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None)


class CreditTransaction(CreditTransactionBase, table=True):
    """Credit transaction database table - append-only."""
    __tablename__ = "credit_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_date: datetime = Field(default_factory=utc_now, index=True)
    blockchain_hash: str = Field(...)


class CreditTransactionRead(CreditTransactionBase):
    """Schema for reading a credit transaction."""
    id: int
    transaction_date: datetime
    blockchain_hash: str


class PublicTransactionRead(SQLModel):
    """Public projection of a transaction; no user identities."""
    id: int
    transaction_type: TransactionType
    amount: float
    transaction_date: datetime
    blockchain_hash: str
    serial_number: str


@event.listens_for(CreditTransaction, "before_update")
def _reject_update(mapper, connection, target):
    raise RuntimeError(f"credit_transactions is append-only (id={target.id})")


@event.listens_for(CreditTransaction, "before_delete")
def _reject_delete(mapper, connection, target):
    raise RuntimeError(f"credit_transactions is append-only (id={target.id})")
