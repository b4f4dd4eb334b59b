"""
Audit log model - append-only tamper-evident audit trail.
"""

from sqlalchemy import event
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from bluecarbon.utils.time import utc_now


class AuditLogBase(SQLModel):
    """Base audit log schema."""
    payload_hash: str = Field(..., description="SHA-256 hash of the audited payload")
    action: str = Field(..., description="Action type (e.g., 'project_approved', 'credits_retired')")
    entity_type: str = Field(..., description="Entity type (e.g., 'project', 'credit')")
    entity_id: Optional[int] = Field(default=None, description="ID of the entity")
    actor_id: Optional[str] = Field(default=None, description="User who performed the action")
    extra_data: Optional[str] = Field(
        default=None,
        description="JSON string of additional metadata"
    )


class AuditLog(AuditLogBase, table=True):
    """Audit log database table - append-only."""

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise RuntimeError(f"auditlog is append-only (id={target.id})")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise RuntimeError(f"auditlog is append-only (id={target.id})")
