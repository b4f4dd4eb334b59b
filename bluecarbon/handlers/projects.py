"""
Project registry handler: creation, listing and lifecycle transitions.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import String, cast
from sqlmodel import select, or_

from bluecarbon.core.constants import PROJECT_DOCUMENTS_BUCKET
from bluecarbon.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from bluecarbon.core.lifecycle import PROJECT_INITIAL_STATUSES, PROJECT_TRANSITIONS, project_transition
from bluecarbon.core.security import Actor
from bluecarbon.handlers.common import check_expected_version, guarded_update, record_audit
from bluecarbon.handlers.storage import BlobStorage, FilePayload, build_object_path, check_upload_size
from bluecarbon.models.mrv import DataSource, MRVSubmission
from bluecarbon.models.profile import UserRole
from bluecarbon.models.project import (
    Project,
    ProjectAction,
    ProjectCreate,
    ProjectStatus,
    ProjectType,
)
from bluecarbon.utils.hashing import ledger_hash
from bluecarbon.utils.time import utc_now

logger = logging.getLogger(__name__)


def validate_project(project_data: ProjectCreate) -> None:
    """
    Check the required project fields before anything is persisted.

    Raises:
        ValidationError: missing name or type, non-positive area, bad dates or initial status
    """
    if not project_data.name or not project_data.name.strip():
        raise ValidationError("Project name is required", context={"field": "name"})
    if not project_data.project_type:
        raise ValidationError("Project type is required", context={"field": "project_type"})
    if project_data.area_hectares is None or project_data.area_hectares <= 0:
        raise ValidationError(
            "area_hectares must be greater than zero",
            context={"field": "area_hectares", "value": project_data.area_hectares},
        )
    if project_data.projected_sequestration is not None and project_data.projected_sequestration < 0:
        raise ValidationError("projected_sequestration cannot be negative", context={"field": "projected_sequestration"})
    if project_data.start_date and project_data.end_date and project_data.end_date < project_data.start_date:
        raise ValidationError("end_date is before start_date", context={"field": "end_date"})
    if project_data.status not in PROJECT_INITIAL_STATUSES:
        raise ValidationError(
            f"Projects are created as draft or submitted, not '{project_data.status.value}'",
            context={"field": "status"},
        )


async def create_project(
    session: AsyncSession,
    actor: Actor,
    project_data: ProjectCreate
) -> Project:
    """Register a new project owned by the caller."""
    if actor.role == UserRole.PUBLIC:
        raise AuthorizationError("Public accounts cannot register projects")
    validate_project(project_data)

    project = Project(
        **project_data.model_dump(exclude={"name"}),
        name=project_data.name.strip(),
        owner_id=actor.user_id,
    )
    project.blockchain_hash = ledger_hash({
        "name": project.name,
        "owner_id": actor.user_id,
        "project_type": project.project_type.value,
        "area_hectares": project.area_hectares,
    })
    session.add(project)
    await session.flush()

    record_audit(
        session,
        action="project_created",
        entity_type="project",
        entity_id=project.id,
        actor_id=actor.user_id,
        payload=project_data.model_dump(),
    )
    await session.commit()
    await session.refresh(project)

    logger.info("Project %s '%s' created by %s as %s", project.id, project.name, actor.user_id, project.status.value)
    return project


def can_view(actor: Actor, project: Project) -> bool:
    return actor.is_admin or project.owner_id == actor.user_id


async def get_project_for(session: AsyncSession, actor: Actor, project_id: int) -> Project:
    """Get a project visible to the caller (owner or admin)."""
    project = await session.get(Project, project_id)
    if project is None or not can_view(actor, project):
        raise NotFoundError(f"Project {project_id} not found", context={"id": project_id})
    return project


def apply_project_filters(
    statement,
    statuses: Optional[Sequence[ProjectStatus]] = None,
    project_type: Optional[ProjectType] = None,
    search: Optional[str] = None,
):
    """Add the shared status / type / free-text filters to a project query."""
    if statuses:
        statement = statement.where(Project.status.in_(list(statuses)))
    if project_type:
        statement = statement.where(Project.project_type == project_type)
    if search and search.strip():
        term = f"%{search.strip().lower()}%"
        statement = statement.where(
            or_(
                Project.name.ilike(term),
                cast(Project.project_type, String).ilike(term),
                Project.address.ilike(term),
            )
        )
    return statement


async def list_projects(
    session: AsyncSession,
    actor: Actor,
    status: Optional[ProjectStatus] = None,
    project_type: Optional[ProjectType] = None,
    search: Optional[str] = None,
) -> List[Project]:
    """List projects: admins see all, everyone else their own."""
    statement = select(Project)
    if not actor.is_admin:
        statement = statement.where(Project.owner_id == actor.user_id)
    statement = apply_project_filters(statement, [status] if status else None, project_type, search)
    statement = statement.order_by(Project.created_at.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def transition_project(
    session: AsyncSession,
    actor: Actor,
    project_id: int,
    action: ProjectAction,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Project:
    """
    Apply a lifecycle action to a project.

    Approval stamps approved_by / approved_at; every admin decision stamps
    reviewed_by / reviewed_at and keeps the review notes.
    """
    project = await get_project_for(session, actor, project_id)
    current = project.status
    target = project_transition(action, current, actor.is_admin)
    version = check_expected_version(project, expected_version, "Project")

    now = utc_now()
    values = {"status": target, "updated_at": now}
    if target == ProjectStatus.APPROVED:
        values.update(approved_by=actor.user_id, approved_at=now)
    if PROJECT_TRANSITIONS[action].admin_only:
        values.update(reviewed_by=actor.user_id, reviewed_at=now)
        if notes is not None:
            values["review_notes"] = notes

    await guarded_update(session, Project, project_id, version, values, allowed_statuses=[current])
    record_audit(
        session,
        action=f"project_{target.value}",
        entity_type="project",
        entity_id=project_id,
        actor_id=actor.user_id,
        payload={"project_id": project_id, "from": current.value, "to": target.value, "notes": notes},
    )
    await session.commit()
    await session.refresh(project)

    logger.info("Project %s: %s -> %s by %s", project_id, current.value, target.value, actor.user_id)
    return project


async def attach_documents(
    session: AsyncSession,
    actor: Actor,
    storage: BlobStorage,
    project_id: int,
    files: List[FilePayload],
) -> MRVSubmission:
    """
    Store project documents and record them as one pending MRV submission.
    """
    project = await get_project_for(session, actor, project_id)
    if not files:
        raise ValidationError("At least one file is required", context={"field": "files"})
    for f in files:
        check_upload_size(len(f.content), f.filename)

    # Upload everything first; a storage failure leaves no database rows behind
    paths = []
    for f in files:
        path = build_object_path(actor.user_id, f.filename)
        paths.append(await storage.upload(PROJECT_DOCUMENTS_BUCKET, path, f.content, f.content_type))

    submission = MRVSubmission(
        project_id=project.id,
        data_source=DataSource.FILE_UPLOAD,
        file_paths=paths,
        data_summary={
            "files": len(files),
            "total_size": sum(len(f.content) for f in files),
            "names": [f.filename for f in files],
        },
        submitted_by=actor.user_id,
    )
    submission.blockchain_hash = ledger_hash({"project_id": project.id, "files": paths})
    session.add(submission)
    await session.flush()

    record_audit(
        session,
        action="project_documents_uploaded",
        entity_type="mrv_submission",
        entity_id=submission.id,
        actor_id=actor.user_id,
        payload={"project_id": project.id, "files": paths},
    )
    await session.commit()
    await session.refresh(submission)

    logger.info("Stored %d document(s) for project %s", len(paths), project.id)
    return submission
