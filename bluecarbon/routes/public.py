"""
Public read-only endpoints (no authentication).
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from bluecarbon.core.database import get_session
from bluecarbon.models.credit import CreditStatus, PublicCreditRead
from bluecarbon.models.project import ProjectType, PublicProjectRead
from bluecarbon.models.transaction import PublicTransactionRead
from bluecarbon.handlers.public import (
    get_public_summary,
    list_public_credits,
    list_public_projects,
    list_public_transactions
)

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/projects", response_model=List[PublicProjectRead])
async def public_projects_endpoint(
    search: Optional[str] = None,
    project_type: Optional[ProjectType] = None,
    session: AsyncSession = Depends(get_session)
):
    """Approved projects."""
    return await list_public_projects(session, search, project_type)


@router.get("/transactions", response_model=List[PublicTransactionRead])
async def public_transactions_endpoint(
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_session)
):
    """Credit transaction trail, newest first."""
    return await list_public_transactions(session, limit)


@router.get("/credits", response_model=List[PublicCreditRead])
async def public_credits_endpoint(
    status: Optional[CreditStatus] = None,
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_session)
):
    """Credit lots by serial number."""
    return await list_public_credits(session, status, limit)


@router.get("/summary")
async def public_summary_endpoint(
    session: AsyncSession = Depends(get_session)
) -> Dict[str, Any]:
    """
    Registry totals.

    Returns:
        - approved_projects
        - total_area_hectares
        - total_projected_sequestration
        - credits_issued
        - credits_retired
    """
    return await get_public_summary(session)
