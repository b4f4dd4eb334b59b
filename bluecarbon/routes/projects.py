"""
Project endpoints.
"""

from fastapi import APIRouter, Depends, status, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from bluecarbon.core.database import get_session
from bluecarbon.core.lifecycle import transition_table
from bluecarbon.core.security import Actor, get_current_actor
from bluecarbon.handlers.storage import BlobStorage, FilePayload, get_storage
from bluecarbon.models.mrv import MRVSubmissionRead
from bluecarbon.models.project import (
    ProjectCreate,
    ProjectRead,
    ProjectStatus,
    ProjectTransitionRequest,
    ProjectType,
)
from bluecarbon.handlers.projects import (
    attach_documents,
    create_project,
    get_project_for,
    list_projects,
    transition_project
)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project_endpoint(
    project: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Register a new project owned by the caller."""
    return await create_project(session, actor, project)


@router.get("", response_model=List[ProjectRead])
async def list_projects_endpoint(
    status: Optional[ProjectStatus] = None,
    project_type: Optional[ProjectType] = None,
    search: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """List projects (admins see all, others their own)."""
    return await list_projects(session, actor, status, project_type, search)


@router.get("/transitions")
async def project_transitions_endpoint():
    """Allowed status transitions for projects, MRV submissions and credits."""
    return transition_table()


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project_endpoint(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Get project by ID."""
    return await get_project_for(session, actor, project_id)


@router.post("/{project_id}/transitions", response_model=ProjectRead)
async def transition_project_endpoint(
    project_id: int,
    request: ProjectTransitionRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """
    Apply a lifecycle action.

    - submit: draft -> submitted (owner or admin)
    - start_review: submitted -> under_review (admin)
    - approve / reject: submitted or under_review -> approved / rejected (admin)
    - activate: approved -> active (admin)
    - complete: active -> completed (admin)
    """
    return await transition_project(
        session, actor, project_id, request.action, request.notes, request.expected_version
    )


@router.post("/{project_id}/documents", response_model=MRVSubmissionRead, status_code=status.HTTP_201_CREATED)
async def upload_documents_endpoint(
    project_id: int,
    files: List[UploadFile] = File(...),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_storage)
):
    """Upload project documents; they are recorded as one pending MRV submission."""
    payloads = [
        FilePayload(f.filename or "upload", await f.read(), f.content_type)
        for f in files
    ]
    return await attach_documents(session, actor, storage, project_id, payloads)
