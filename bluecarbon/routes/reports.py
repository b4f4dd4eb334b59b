"""
Report and aggregation endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any

from bluecarbon.core.database import get_session
from bluecarbon.core.security import Actor, get_current_actor
from bluecarbon.handlers.reports import (
    get_admin_overview,
    get_dashboard_stats,
    get_portfolio
)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard")
async def dashboard_endpoint(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
) -> Dict[str, Any]:
    """
    Dashboard stats for the caller.

    Returns:
        - total_projects
        - total_credits_issued
        - total_projected_sequestration
        - pending_verifications
    """
    return await get_dashboard_stats(session, actor)


@router.get("/admin")
async def admin_overview_endpoint(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
) -> Dict[str, Any]:
    """Review queues and registry counts (admin only)."""
    return await get_admin_overview(session, actor)


@router.get("/portfolio")
async def portfolio_endpoint(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
) -> Dict[str, Any]:
    """The caller's credits, transactions, balances and estimated value."""
    return await get_portfolio(session, actor)
