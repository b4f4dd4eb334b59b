"""
Helpers shared by the registry handlers: audit rows, guarded updates and lookups.
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional, Type, TypeVar

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from bluecarbon.core.exceptions import ConflictError, NotFoundError
from bluecarbon.models.audit import AuditLog
from bluecarbon.utils.hashing import hash_payload

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


def record_audit(
    session: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[int],
    actor_id: Optional[str],
    payload: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit log row in the caller's transaction."""
    audit = AuditLog(
        payload_hash=hash_payload(payload),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        extra_data=json.dumps(extra, default=str) if extra else None,
    )
    session.add(audit)
    return audit


async def get_or_404(session: AsyncSession, model: Type[ModelT], entity_id: int, label: str) -> ModelT:
    """Fetch a row by primary key or raise NotFoundError."""
    entity = await session.get(model, entity_id)
    if entity is None:
        raise NotFoundError(f"{label} {entity_id} not found", context={"id": entity_id})
    return entity


def check_expected_version(entity: Any, expected_version: Optional[int], label: str) -> int:
    """
    Return the version a guarded update must match.

    A caller-supplied version that is already stale fails fast with ConflictError.
    """
    if expected_version is not None and expected_version != entity.version:
        raise ConflictError(
            f"{label} {entity.id} was modified (version {entity.version}, expected {expected_version}); reload and retry",
            context={"id": entity.id, "version": entity.version, "expected_version": expected_version},
        )
    return entity.version if expected_version is None else expected_version


async def guarded_update(
    session: AsyncSession,
    model: Type[SQLModel],
    entity_id: int,
    expected_version: int,
    values: Dict[str, Any],
    status_column: str = "status",
    allowed_statuses: Optional[Iterable[Any]] = None,
) -> None:
    """
    Apply `values` with one conditional UPDATE and bump the row version.

    The row must still be at `expected_version` (and in one of
    `allowed_statuses` when given). If another session got there first no row
    matches: the transaction is rolled back and ConflictError raised.
    """
    statement = (
        update(model)
        .where(model.id == entity_id, model.version == expected_version)
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    if allowed_statuses is not None:
        statement = statement.where(getattr(model, status_column).in_(list(allowed_statuses)))

    result = await session.execute(statement)
    if result.rowcount != 1:
        await session.rollback()
        logger.warning(
            "Concurrent update lost on %s %s at version %s",
            model.__tablename__, entity_id, expected_version
        )
        raise ConflictError(
            f"{model.__name__} {entity_id} was changed by another request; reload and retry",
            context={"id": entity_id, "expected_version": expected_version},
        )
