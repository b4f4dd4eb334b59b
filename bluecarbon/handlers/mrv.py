"""
MRV submission handler: monitoring data intake and admin verification.
"""

import csv
import io
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from bluecarbon.core.constants import CARBON_MEASUREMENT_COLUMNS, DATA_SOURCE_BY_EXTENSION, MRV_DATA_BUCKET
from bluecarbon.core.exceptions import NotFoundError, ValidationError
from bluecarbon.core.lifecycle import mrv_transition
from bluecarbon.core.security import Actor, require_admin
from bluecarbon.handlers.common import check_expected_version, guarded_update, record_audit
from bluecarbon.handlers.projects import can_view, get_project_for
from bluecarbon.handlers.storage import (
    BlobStorage,
    FilePayload,
    build_object_path,
    check_upload_size,
    file_extension,
)
from bluecarbon.models.mrv import (
    DataSource,
    MRVSubmission,
    MRVSubmissionCreate,
    ReviewDecision,
    VerificationStatus,
)
from bluecarbon.models.project import Project
from bluecarbon.utils.hashing import ledger_hash
from bluecarbon.utils.time import utc_now

logger = logging.getLogger(__name__)


def data_source_for(filename: Optional[str]) -> DataSource:
    """Map a file extension to the MRV data source."""
    return DataSource(DATA_SOURCE_BY_EXTENSION.get(file_extension(filename), DataSource.OTHER.value))


def summarize_csv(content: bytes) -> Dict[str, Any]:
    """
    Stream-parse an MRV CSV file.

    Returns:
        Dict with processed_rows, columns and, when the file has a carbon
        column, carbon_total (sum of its non-empty values)
    """
    try:
        text_stream = io.StringIO(content.decode("utf-8-sig"))
    except UnicodeDecodeError as e:
        raise ValidationError(f"CSV file is not valid UTF-8: {e}")

    reader = csv.DictReader(text_stream)
    columns = [(c or "").strip() for c in (reader.fieldnames or [])]
    reader.fieldnames = columns
    carbon_column = next((c for c in CARBON_MEASUREMENT_COLUMNS if c in columns), None)

    rows = 0
    carbon_total = 0.0
    for row_num, row in enumerate(reader, start=2):
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        rows += 1
        if carbon_column:
            raw = (row.get(carbon_column) or "").strip()
            if not raw:
                continue
            try:
                value = float(raw)
            except ValueError:
                value = math.nan
            if not math.isfinite(value):
                raise ValidationError(
                    f"Invalid {carbon_column} in row {row_num}: {raw!r}",
                    context={"row": row_num, "column": carbon_column},
                )
            carbon_total += value

    if not math.isfinite(carbon_total):
        raise ValidationError(f"{carbon_column} total is out of range", context={"column": carbon_column})

    summary: Dict[str, Any] = {"processed_rows": rows, "columns": columns}
    if carbon_column:
        summary["carbon_column"] = carbon_column
        summary["carbon_total"] = round(carbon_total, 6)
    return summary


def _check_measurement(value: Optional[float]) -> None:
    if value is not None and not math.isfinite(value):
        raise ValidationError("carbon_measurement must be a finite number", context={"field": "carbon_measurement"})
    if value is not None and value < 0:
        raise ValidationError("carbon_measurement cannot be negative", context={"field": "carbon_measurement"})


async def _store_submission(session: AsyncSession, actor: Actor, submission: MRVSubmission) -> MRVSubmission:
    submission.blockchain_hash = ledger_hash({
        "project_id": submission.project_id,
        "submitted_by": actor.user_id,
        "carbon_measurement": submission.carbon_measurement,
        "file_paths": submission.file_paths,
    })
    session.add(submission)
    await session.flush()

    record_audit(
        session,
        action="mrv_submitted",
        entity_type="mrv_submission",
        entity_id=submission.id,
        actor_id=actor.user_id,
        payload={
            "project_id": submission.project_id,
            "data_source": submission.data_source.value,
            "carbon_measurement": submission.carbon_measurement,
        },
    )
    await session.commit()
    await session.refresh(submission)

    logger.info("MRV submission %s recorded for project %s", submission.id, submission.project_id)
    return submission


async def create_submission(
    session: AsyncSession,
    actor: Actor,
    submission_data: MRVSubmissionCreate
) -> MRVSubmission:
    """Record monitoring data entered directly (no file)."""
    project = await get_project_for(session, actor, submission_data.project_id)
    _check_measurement(submission_data.carbon_measurement)

    submission = MRVSubmission(
        **submission_data.model_dump(exclude={"project_id"}),
        project_id=project.id,
        submitted_by=actor.user_id,
    )
    return await _store_submission(session, actor, submission)


async def upload_submission(
    session: AsyncSession,
    actor: Actor,
    storage: BlobStorage,
    project_id: int,
    upload: FilePayload,
    notes: Optional[str] = None,
    carbon_measurement: Optional[float] = None,
) -> MRVSubmission:
    """
    Store an MRV data file and record a pending submission for it.

    CSV files are parsed for a row count; a carbon_measurement / carbon_tonnes
    column is summed when no explicit measurement is supplied.
    """
    project = await get_project_for(session, actor, project_id)
    _check_measurement(carbon_measurement)
    check_upload_size(len(upload.content), upload.filename)

    data_source = data_source_for(upload.filename)
    summary: Dict[str, Any] = {"file_name": upload.filename, "file_size": len(upload.content)}
    if data_source == DataSource.CSV:
        summary.update(summarize_csv(upload.content))
        if carbon_measurement is None and "carbon_total" in summary:
            carbon_measurement = summary["carbon_total"]
            _check_measurement(carbon_measurement)

    path = build_object_path(actor.user_id, upload.filename)
    stored_path = await storage.upload(MRV_DATA_BUCKET, path, upload.content, upload.content_type)

    submission = MRVSubmission(
        project_id=project.id,
        data_source=data_source,
        carbon_measurement=carbon_measurement,
        data_summary=summary,
        file_paths=[stored_path],
        notes=notes,
        submitted_by=actor.user_id,
    )
    return await _store_submission(session, actor, submission)


async def get_submission_for(session: AsyncSession, actor: Actor, submission_id: int) -> MRVSubmission:
    """Get a submission visible to the caller (project owner or admin)."""
    submission = await session.get(MRVSubmission, submission_id)
    if submission is not None:
        project = await session.get(Project, submission.project_id)
        if project is not None and can_view(actor, project):
            return submission
    raise NotFoundError(f"MRV submission {submission_id} not found", context={"id": submission_id})


async def list_submissions(
    session: AsyncSession,
    actor: Actor,
    project_id: Optional[int] = None,
    status: Optional[VerificationStatus] = None,
) -> List[MRVSubmission]:
    """List submissions: admins see all, everyone else those of their own projects."""
    statement = select(MRVSubmission)
    if not actor.is_admin:
        statement = statement.join(Project, MRVSubmission.project_id == Project.id).where(
            Project.owner_id == actor.user_id
        )
    if project_id is not None:
        statement = statement.where(MRVSubmission.project_id == project_id)
    if status:
        statement = statement.where(MRVSubmission.verification_status == status)
    statement = statement.order_by(MRVSubmission.created_at.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def review_submission(
    session: AsyncSession,
    actor: Actor,
    submission_id: int,
    decision: ReviewDecision,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> MRVSubmission:
    """
    Verify or reject a pending submission (admin only).

    The measurement itself is never changed by a review.
    """
    require_admin(actor, "review MRV data")
    submission = await get_submission_for(session, actor, submission_id)
    current = submission.verification_status
    target = mrv_transition(decision, current)
    version = check_expected_version(submission, expected_version, "MRV submission")

    now = utc_now()
    values: Dict[str, Any] = {
        "verification_status": target,
        "reviewed_by": actor.user_id,
        "reviewed_at": now,
        "review_notes": notes,
    }
    if target == VerificationStatus.VERIFIED:
        values.update(verified_by=actor.user_id, verified_at=now)

    await guarded_update(
        session,
        MRVSubmission,
        submission_id,
        version,
        values,
        status_column="verification_status",
        allowed_statuses=[current],
    )
    record_audit(
        session,
        action=f"mrv_{target.value}",
        entity_type="mrv_submission",
        entity_id=submission_id,
        actor_id=actor.user_id,
        payload={"submission_id": submission_id, "decision": target.value, "notes": notes},
    )
    await session.commit()
    await session.refresh(submission)

    logger.info("MRV submission %s %s by %s", submission_id, target.value, actor.user_id)
    return submission
