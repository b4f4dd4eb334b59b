"""
Carbon credit endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from bluecarbon.core.database import get_session
from bluecarbon.core.security import Actor, get_current_actor
from bluecarbon.models.credit import (
    CreditIssueRequest,
    CreditRead,
    CreditRetireRequest,
    CreditStatus,
    CreditTransferRequest,
    CreditTransferResult,
)
from bluecarbon.models.transaction import CreditTransactionRead
from bluecarbon.handlers.credits import (
    get_credit_for,
    issue_credits,
    list_credit_transactions,
    list_credits,
    retire_credit,
    transfer_credit
)

router = APIRouter(prefix="/credits", tags=["credits"])


@router.post("/issue", response_model=CreditRead, status_code=status.HTTP_201_CREATED)
async def issue_credits_endpoint(
    request: CreditIssueRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Issue a new credit lot against an approved project (admin only)."""
    return await issue_credits(session, actor, request.project_id, request.credit_amount, request.vintage_year)


@router.get("", response_model=List[CreditRead])
async def list_credits_endpoint(
    owner_id: Optional[str] = None,
    project_id: Optional[int] = None,
    status: Optional[CreditStatus] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """List credits (admins may filter by owner, others see their own)."""
    return await list_credits(session, actor, owner_id, project_id, status)


@router.get("/{credit_id}", response_model=CreditRead)
async def get_credit_endpoint(
    credit_id: int,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Get credit by ID."""
    return await get_credit_for(session, actor, credit_id)


@router.get("/{credit_id}/transactions", response_model=List[CreditTransactionRead])
async def credit_transactions_endpoint(
    credit_id: int,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Transaction history of a credit lot."""
    return await list_credit_transactions(session, actor, credit_id)


@router.post("/{credit_id}/transfer", response_model=CreditTransferResult)
async def transfer_credit_endpoint(
    credit_id: int,
    request: CreditTransferRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """
    Transfer all or part of an issued credit lot.

    A partial transfer splits the lot; the new lot is returned as transferred_credit.
    """
    outcome = await transfer_credit(
        session,
        actor,
        credit_id,
        request.amount,
        request.recipient,
        request.price_per_credit,
        request.notes,
        request.expected_version,
    )
    return CreditTransferResult(
        credit=CreditRead.model_validate(outcome.credit, from_attributes=True),
        transferred_credit=(
            CreditRead.model_validate(outcome.transferred_credit, from_attributes=True)
            if outcome.transferred_credit else None
        ),
        transaction_id=outcome.transaction.id,
    )


@router.post("/{credit_id}/retire", response_model=CreditRead)
async def retire_credit_endpoint(
    credit_id: int,
    request: CreditRetireRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Retire the remaining balance of a credit lot. Retirement is permanent."""
    return await retire_credit(session, actor, credit_id, request.reason, request.notes, request.expected_version)
