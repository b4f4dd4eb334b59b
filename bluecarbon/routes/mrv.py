"""
MRV submission endpoints.
"""

from fastapi import APIRouter, Depends, status, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from bluecarbon.core.database import get_session
from bluecarbon.core.security import Actor, get_current_actor
from bluecarbon.handlers.storage import BlobStorage, FilePayload, get_storage
from bluecarbon.models.mrv import (
    MRVReviewRequest,
    MRVSubmissionCreate,
    MRVSubmissionRead,
    VerificationStatus,
)
from bluecarbon.handlers.mrv import (
    create_submission,
    get_submission_for,
    list_submissions,
    review_submission,
    upload_submission
)

router = APIRouter(prefix="/mrv", tags=["mrv"])


@router.post("", response_model=MRVSubmissionRead, status_code=status.HTTP_201_CREATED)
async def create_submission_endpoint(
    submission: MRVSubmissionCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Record monitoring data for a project."""
    return await create_submission(session, actor, submission)


@router.post("/upload", response_model=MRVSubmissionRead, status_code=status.HTTP_201_CREATED)
async def upload_submission_endpoint(
    project_id: int = Form(...),
    file: UploadFile = File(...),
    notes: Optional[str] = Form(None),
    carbon_measurement: Optional[float] = Form(None),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_storage)
):
    """
    Upload an MRV data file (CSV, Excel or other).

    CSV format example:
    date,site,carbon_measurement
    2024-03-01,plot-a,12.5
    2024-03-01,plot-b,8.25

    Row count is recorded; a carbon_measurement or carbon_tonnes column is
    summed into the submission's measurement unless one is given explicitly.
    """
    content = await file.read()
    payload = FilePayload(file.filename or "upload", content, file.content_type)
    return await upload_submission(session, actor, storage, project_id, payload, notes, carbon_measurement)


@router.get("", response_model=List[MRVSubmissionRead])
async def list_submissions_endpoint(
    project_id: Optional[int] = None,
    status: Optional[VerificationStatus] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """List MRV submissions (admins see all, others those of their projects)."""
    return await list_submissions(session, actor, project_id, status)


@router.get("/{submission_id}", response_model=MRVSubmissionRead)
async def get_submission_endpoint(
    submission_id: int,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Get MRV submission by ID."""
    return await get_submission_for(session, actor, submission_id)


@router.post("/{submission_id}/review", response_model=MRVSubmissionRead)
async def review_submission_endpoint(
    submission_id: int,
    review: MRVReviewRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Verify or reject a pending submission (admin only)."""
    return await review_submission(
        session, actor, submission_id, review.decision, review.notes, review.expected_version
    )
