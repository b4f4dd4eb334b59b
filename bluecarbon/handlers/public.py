"""
Public read projection: approved projects and the credit trail, no identities.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func

from bluecarbon.handlers.projects import apply_project_filters
from bluecarbon.models.credit import Credit, CreditStatus, PublicCreditRead
from bluecarbon.models.project import Project, ProjectStatus, ProjectType, PublicProjectRead
from bluecarbon.models.transaction import CreditTransaction, PublicTransactionRead, TransactionType


async def list_public_projects(
    session: AsyncSession,
    search: Optional[str] = None,
    project_type: Optional[ProjectType] = None,
) -> List[PublicProjectRead]:
    """Approved projects only."""
    statement = apply_project_filters(select(Project), [ProjectStatus.APPROVED], project_type, search)
    statement = statement.order_by(Project.created_at.desc())

    result = await session.execute(statement)
    return [PublicProjectRead.model_validate(p, from_attributes=True) for p in result.scalars().all()]


async def list_public_transactions(session: AsyncSession, limit: int = 100) -> List[PublicTransactionRead]:
    """Ledger history, newest first, with the credit serial instead of user ids."""
    statement = (
        select(CreditTransaction, Credit.serial_number)
        .join(Credit, CreditTransaction.credit_id == Credit.id)
        .order_by(CreditTransaction.transaction_date.desc(), CreditTransaction.id.desc())
        .limit(limit)
    )
    result = await session.execute(statement)
    return [
        PublicTransactionRead(
            id=tx.id,
            transaction_type=tx.transaction_type,
            amount=tx.amount,
            transaction_date=tx.transaction_date,
            blockchain_hash=tx.blockchain_hash,
            serial_number=serial,
        )
        for tx, serial in result.all()
    ]


async def list_public_credits(
    session: AsyncSession,
    status: Optional[CreditStatus] = None,
    limit: int = 100,
) -> List[PublicCreditRead]:
    statement = select(Credit)
    if status:
        statement = statement.where(Credit.status == status)
    statement = statement.order_by(Credit.created_at.desc()).limit(limit)

    result = await session.execute(statement)
    return [PublicCreditRead.model_validate(c, from_attributes=True) for c in result.scalars().all()]


async def get_public_summary(session: AsyncSession) -> Dict[str, Any]:
    """
    Registry-wide totals shown on the public page.

    Issued totals count face amounts of issue transactions, so split lots are
    not counted twice.
    """
    approved = await session.execute(
        select(
            func.count(Project.id),
            func.sum(Project.area_hectares),
            func.sum(Project.projected_sequestration),
        ).where(Project.status == ProjectStatus.APPROVED)
    )
    project_count, total_area, total_sequestration = approved.one()

    issued = await session.execute(
        select(func.sum(CreditTransaction.amount)).where(
            CreditTransaction.transaction_type == TransactionType.ISSUE
        )
    )
    retired = await session.execute(
        select(func.sum(CreditTransaction.amount)).where(
            CreditTransaction.transaction_type == TransactionType.RETIRE
        )
    )

    return {
        "approved_projects": project_count or 0,
        "total_area_hectares": round(total_area or 0.0, 2),
        "total_projected_sequestration": round(total_sequestration or 0.0, 2),
        "credits_issued": round(issued.scalar() or 0.0, 6),
        "credits_retired": round(retired.scalar() or 0.0, 6),
    }
