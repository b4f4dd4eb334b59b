"""
Report and aggregation handlers.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func, or_
from typing import Dict, Any

from bluecarbon.core.config import get_settings
from bluecarbon.core.lifecycle import CREDIT_ACTIVE_STATUSES, PROJECT_REVIEW_QUEUE_STATUSES
from bluecarbon.core.security import Actor, require_admin
from bluecarbon.models.credit import Credit, CreditRead, CreditStatus
from bluecarbon.models.mrv import MRVSubmission, VerificationStatus
from bluecarbon.models.project import Project, ProjectStatus
from bluecarbon.models.transaction import CreditTransaction, CreditTransactionRead, TransactionType


async def get_dashboard_stats(session: AsyncSession, actor: Actor) -> Dict[str, Any]:
    """
    Headline numbers for the caller's dashboard.

    Admins get registry-wide numbers, everyone else those of their own projects.

    Returns:
        Dictionary with total projects, credits issued, projected sequestration
        and pending MRV verifications
    """
    project_ids = select(Project.id)
    if not actor.is_admin:
        project_ids = project_ids.where(Project.owner_id == actor.user_id)

    # Projects
    projects = await session.execute(
        select(func.count(Project.id), func.sum(Project.projected_sequestration)).where(
            Project.id.in_(project_ids)
        )
    )
    project_count, projected = projects.one()

    # Credits issued against those projects (face amount of issue events)
    issued = await session.execute(
        select(func.sum(CreditTransaction.amount))
        .join(Credit, CreditTransaction.credit_id == Credit.id)
        .where(
            CreditTransaction.transaction_type == TransactionType.ISSUE,
            Credit.project_id.in_(project_ids),
        )
    )
    issued_total = issued.scalar() or 0.0

    # Pending MRV
    pending = await session.execute(
        select(func.count(MRVSubmission.id)).where(
            MRVSubmission.verification_status == VerificationStatus.PENDING,
            MRVSubmission.project_id.in_(project_ids),
        )
    )
    pending_count = pending.scalar() or 0

    return {
        "total_projects": project_count or 0,
        "total_credits_issued": round(issued_total, 6),
        "total_projected_sequestration": round(projected or 0.0, 2),
        "pending_verifications": pending_count,
    }


async def get_admin_overview(session: AsyncSession, actor: Actor) -> Dict[str, Any]:
    """Review queue sizes and registry counts (admin only)."""
    require_admin(actor, "view the admin overview")

    by_status = await session.execute(
        select(Project.status, func.count(Project.id)).group_by(Project.status)
    )
    status_counts = {s.value: 0 for s in ProjectStatus}
    for status, count in by_status.all():
        status_counts[ProjectStatus(status).value] = count

    pending_mrv = await session.execute(
        select(func.count(MRVSubmission.id)).where(
            MRVSubmission.verification_status == VerificationStatus.PENDING
        )
    )
    issued_credits = await session.execute(
        select(func.count(CreditTransaction.id)).where(
            CreditTransaction.transaction_type == TransactionType.ISSUE
        )
    )

    return {
        "projects_awaiting_review": sum(status_counts[s.value] for s in PROJECT_REVIEW_QUEUE_STATUSES),
        "pending_mrv_submissions": pending_mrv.scalar() or 0,
        "issued_credit_lots": issued_credits.scalar() or 0,
        "approved_projects": status_counts[ProjectStatus.APPROVED.value],
        "projects_by_status": status_counts,
    }


async def get_portfolio(session: AsyncSession, actor: Actor) -> Dict[str, Any]:
    """
    The caller's credit holdings.

    Returns:
        Dictionary with owned lots, transactions involving the caller, active
        balance, retired total and estimated value of the active balance
    """
    credits_result = await session.execute(
        select(Credit).where(Credit.current_owner_id == actor.user_id).order_by(Credit.created_at.desc())
    )
    credits = list(credits_result.scalars().all())

    transactions_result = await session.execute(
        select(CreditTransaction).where(
            or_(
                CreditTransaction.from_user_id == actor.user_id,
                CreditTransaction.to_user_id == actor.user_id,
            )
        ).order_by(CreditTransaction.transaction_date.desc(), CreditTransaction.id.desc())
    )
    transactions = list(transactions_result.scalars().all())

    active_balance = sum(c.credit_amount for c in credits if c.status in CREDIT_ACTIVE_STATUSES)
    retired_total = sum(c.credit_amount for c in credits if c.status == CreditStatus.RETIRED)
    price = get_settings().credit_reference_price

    return {
        "credits": [CreditRead.model_validate(c, from_attributes=True) for c in credits],
        "transactions": [CreditTransactionRead.model_validate(t, from_attributes=True) for t in transactions],
        "active_balance": round(active_balance, 6),
        "retired_total": round(retired_total, 6),
        "estimated_value": round(active_balance * price, 2),
        "reference_price": price,
    }
