"""
Credit ledger handler: issue, transfer and retire serialized credit lots.

Every balance or status change goes through one guarded UPDATE on the
credit row and appends exactly one CreditTransaction in the same commit.
"""

import logging
from typing import List, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import and_, func, select, or_

from bluecarbon.core.config import get_settings
from bluecarbon.core.constants import AMOUNT_DECIMALS, SERIAL_GENERATION_ATTEMPTS
from bluecarbon.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidAmount,
    NotFoundError,
    ValidationError,
)
from bluecarbon.core.lifecycle import (
    CREDIT_ACTIVE_STATUSES,
    CREDIT_ELIGIBLE_PROJECT_STATUSES,
    CREDIT_TRANSFERABLE_STATUSES,
    ensure_credit_transition,
)
from bluecarbon.core.security import Actor, require_admin
from bluecarbon.handlers.common import check_expected_version, get_or_404, guarded_update, record_audit
from bluecarbon.handlers.profiles import resolve_profile
from bluecarbon.models.credit import Credit, CreditStatus, RetirementReason
from bluecarbon.models.project import Project
from bluecarbon.models.transaction import CreditTransaction, TransactionType
from bluecarbon.utils.hashing import ledger_hash
from bluecarbon.utils.serials import generate_serial
from bluecarbon.utils.time import utc_now, utc_today

logger = logging.getLogger(__name__)


class TransferOutcome(NamedTuple):
    credit: Credit
    transferred_credit: Optional[Credit]
    transaction: CreditTransaction


def normalize_amount(amount: float) -> float:
    """Round a credit amount to ledger precision and reject non-positive values."""
    if amount is None:
        raise InvalidAmount("Amount is required", context={"field": "amount"})
    value = round(float(amount), AMOUNT_DECIMALS)
    if value <= 0:
        raise InvalidAmount("Amount must be greater than zero", context={"amount": amount})
    return value


async def _new_serial(session: AsyncSession, vintage_year: int) -> str:
    prefix = get_settings().credit_serial_prefix
    for _ in range(SERIAL_GENERATION_ATTEMPTS):
        serial = generate_serial(prefix, vintage_year)
        existing = await session.execute(select(Credit.id).where(Credit.serial_number == serial))
        if existing.first() is None:
            return serial
        logger.warning("Serial number collision on %s, regenerating", serial)
    raise ConflictError("Could not allocate a unique serial number; retry", context={"vintage_year": vintage_year})


async def _commit(session: AsyncSession, operation: str) -> None:
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning("Ledger %s rejected by database constraint: %s", operation, e.orig)
        raise ConflictError(f"Credit {operation} conflicted with a concurrent write; retry")


def _append_transaction(
    session: AsyncSession,
    credit_id: int,
    transaction_type: TransactionType,
    amount: float,
    from_user_id: Optional[str] = None,
    to_user_id: Optional[str] = None,
    source_credit_id: Optional[int] = None,
    price_per_credit: Optional[float] = None,
    notes: Optional[str] = None,
) -> CreditTransaction:
    transaction = CreditTransaction(
        credit_id=credit_id,
        transaction_type=transaction_type,
        amount=amount,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        source_credit_id=source_credit_id,
        price_per_credit=price_per_credit,
        notes=notes,
        blockchain_hash=ledger_hash({
            "credit_id": credit_id,
            "type": transaction_type.value,
            "amount": amount,
            "from": from_user_id,
            "to": to_user_id,
        }),
    )
    session.add(transaction)
    return transaction


async def issue_credits(
    session: AsyncSession,
    actor: Actor,
    project_id: int,
    credit_amount: float,
    vintage_year: Optional[int] = None,
) -> Credit:
    """
    Mint a new credit lot against an approved project (admin only).

    The issuing admin owns the lot until it is transferred.

    Raises:
        InvalidAmount: amount <= 0
        ValidationError: project not approved / active / completed
    """
    require_admin(actor, "issue credits")
    amount = normalize_amount(credit_amount)
    project = await get_or_404(session, Project, project_id, "Project")
    if project.status not in CREDIT_ELIGIBLE_PROJECT_STATUSES:
        raise ValidationError(
            f"Credits cannot be issued for a project in status '{project.status.value}'",
            context={"project_id": project_id, "status": project.status.value},
        )
    vintage = vintage_year or utc_today().year

    serial = await _new_serial(session, vintage)
    credit = Credit(
        project_id=project.id,
        serial_number=serial,
        credit_amount=amount,
        issued_amount=amount,
        vintage_year=vintage,
        status=CreditStatus.ISSUED,
        current_owner_id=actor.user_id,
        issued_by=actor.user_id,
    )
    session.add(credit)
    await session.flush()

    transaction = _append_transaction(
        session, credit.id, TransactionType.ISSUE, amount, to_user_id=actor.user_id
    )
    credit.blockchain_transaction_hash = transaction.blockchain_hash
    record_audit(
        session,
        action="credits_issued",
        entity_type="credit",
        entity_id=credit.id,
        actor_id=actor.user_id,
        payload={"project_id": project.id, "serial_number": serial, "amount": amount, "vintage_year": vintage},
    )
    await _commit(session, "issue")
    await session.refresh(credit)

    logger.info("Issued %s credits as %s for project %s", amount, serial, project.id)
    return credit


def can_view_credit(actor: Actor, credit: Credit) -> bool:
    return actor.is_admin or credit.current_owner_id == actor.user_id


async def get_credit_for(session: AsyncSession, actor: Actor, credit_id: int) -> Credit:
    """Get a credit visible to the caller (current owner or admin)."""
    credit = await session.get(Credit, credit_id)
    if credit is None or not can_view_credit(actor, credit):
        raise NotFoundError(f"Credit {credit_id} not found", context={"id": credit_id})
    return credit


async def _owned_credit(session: AsyncSession, actor: Actor, credit_id: int, action: str) -> Credit:
    credit = await get_or_404(session, Credit, credit_id, "Credit")
    if credit.current_owner_id != actor.user_id:
        logger.warning("%s attempted to %s credit %s owned by someone else", actor.user_id, action, credit_id)
        raise AuthorizationError(f"Only the current owner can {action} this credit", context={"id": credit_id})
    return credit


async def list_credits(
    session: AsyncSession,
    actor: Actor,
    owner_id: Optional[str] = None,
    project_id: Optional[int] = None,
    status: Optional[CreditStatus] = None,
) -> List[Credit]:
    """List credit lots: admins may filter by owner, everyone else sees their own."""
    statement = select(Credit)
    if not actor.is_admin:
        owner_id = actor.user_id
    if owner_id:
        statement = statement.where(Credit.current_owner_id == owner_id)
    if project_id is not None:
        statement = statement.where(Credit.project_id == project_id)
    if status:
        statement = statement.where(Credit.status == status)
    statement = statement.order_by(Credit.created_at.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def list_credit_transactions(session: AsyncSession, actor: Actor, credit_id: int) -> List[CreditTransaction]:
    """History of a lot, including the partial transfers split off it."""
    await get_credit_for(session, actor, credit_id)
    statement = select(CreditTransaction).where(
        or_(CreditTransaction.credit_id == credit_id, CreditTransaction.source_credit_id == credit_id)
    ).order_by(CreditTransaction.transaction_date, CreditTransaction.id)

    result = await session.execute(statement)
    return list(result.scalars().all())


async def _transferred_out(session: AsyncSession, credit_id: int) -> float:
    """Total moved out of a lot so far: its own hand-over plus every split."""
    statement = select(func.coalesce(func.sum(CreditTransaction.amount), 0.0)).where(
        CreditTransaction.transaction_type == TransactionType.TRANSFER,
        or_(
            and_(CreditTransaction.credit_id == credit_id, CreditTransaction.source_credit_id.is_(None)),
            CreditTransaction.source_credit_id == credit_id,
        ),
    )
    result = await session.execute(statement)
    return round(float(result.scalar_one()), AMOUNT_DECIMALS)


async def transfer_credit(
    session: AsyncSession,
    actor: Actor,
    credit_id: int,
    amount: float,
    recipient: str,
    price_per_credit: Optional[float] = None,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> TransferOutcome:
    """
    Move `amount` of an issued lot to another registered user.

    A full transfer hands the lot over and records the transfer on it. A
    partial transfer splits it: the source keeps the remainder in its current
    status, and a child lot with a new serial is created for the recipient.
    The transfer is recorded on the child, pointing back at its source.

    Transferred lots can be retired but not transferred again, so the
    transfers recorded on any lot never add up to more than its balance.
    """
    credit = await _owned_credit(session, actor, credit_id, "transfer")
    ensure_credit_transition(credit.status, CreditStatus.TRANSFERRED)
    value = normalize_amount(amount)
    balance = round(credit.credit_amount, AMOUNT_DECIMALS)
    if value > balance:
        raise InvalidAmount(
            f"Transfer amount {value} exceeds available balance {balance}",
            context={"id": credit_id, "amount": value, "balance": balance},
        )
    moved = await _transferred_out(session, credit_id)
    if round(moved + value, AMOUNT_DECIMALS) > round(credit.issued_amount, AMOUNT_DECIMALS):
        raise InvalidAmount(
            f"Transfers out of credit {credit_id} would exceed its issued amount {credit.issued_amount}",
            context={"id": credit_id, "amount": value, "transferred": moved, "issued_amount": credit.issued_amount},
        )
    if price_per_credit is not None and price_per_credit < 0:
        raise ValidationError("price_per_credit cannot be negative", context={"field": "price_per_credit"})

    target = await resolve_profile(session, recipient)
    if target.user_id == actor.user_id:
        raise ValidationError("Cannot transfer credits to yourself", context={"recipient": recipient})

    version = check_expected_version(credit, expected_version, "Credit")
    sender = credit.current_owner_id
    now = utc_now()
    child: Optional[Credit] = None

    if value == balance:
        values = {"current_owner_id": target.user_id, "status": CreditStatus.TRANSFERRED, "updated_at": now}
        await guarded_update(
            session, Credit, credit_id, version, values, allowed_statuses=CREDIT_TRANSFERABLE_STATUSES
        )
    else:
        remainder = round(balance - value, AMOUNT_DECIMALS)
        await guarded_update(
            session, Credit, credit_id, version,
            {"credit_amount": remainder, "updated_at": now},
            allowed_statuses=CREDIT_TRANSFERABLE_STATUSES,
        )
        child = Credit(
            project_id=credit.project_id,
            serial_number=await _new_serial(session, credit.vintage_year),
            credit_amount=value,
            issued_amount=value,
            vintage_year=credit.vintage_year,
            status=CreditStatus.TRANSFERRED,
            current_owner_id=target.user_id,
            issue_date=credit.issue_date,
            parent_credit_id=credit_id,
            issued_by=credit.issued_by,
        )
        session.add(child)
        await session.flush()

    transaction = _append_transaction(
        session,
        child.id if child else credit_id,
        TransactionType.TRANSFER,
        value,
        from_user_id=sender,
        to_user_id=target.user_id,
        source_credit_id=credit_id if child else None,
        price_per_credit=price_per_credit,
        notes=notes,
    )
    if child is not None:
        child.blockchain_transaction_hash = transaction.blockchain_hash
    record_audit(
        session,
        action="credits_transferred",
        entity_type="credit",
        entity_id=credit_id,
        actor_id=actor.user_id,
        payload={
            "credit_id": credit_id,
            "amount": value,
            "from": sender,
            "to": target.user_id,
            "child_credit_id": child.id if child else None,
        },
    )
    await _commit(session, "transfer")
    await session.refresh(credit)
    await session.refresh(transaction)
    if child is not None:
        await session.refresh(child)

    logger.info(
        "Transferred %s of credit %s from %s to %s%s",
        value, credit_id, sender, target.user_id,
        f" (split into credit {child.id})" if child else "",
    )
    return TransferOutcome(credit, child, transaction)


async def retire_credit(
    session: AsyncSession,
    actor: Actor,
    credit_id: int,
    reason: RetirementReason,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Credit:
    """Permanently retire the whole remaining balance of a lot."""
    credit = await _owned_credit(session, actor, credit_id, "retire")
    ensure_credit_transition(credit.status, CreditStatus.RETIRED)
    version = check_expected_version(credit, expected_version, "Credit")
    balance = round(credit.credit_amount, AMOUNT_DECIMALS)
    owner = credit.current_owner_id

    transaction = _append_transaction(
        session, credit_id, TransactionType.RETIRE, balance, from_user_id=owner, notes=notes
    )
    await guarded_update(
        session,
        Credit,
        credit_id,
        version,
        {
            "status": CreditStatus.RETIRED,
            "retired_date": utc_today(),
            "retirement_reason": reason,
            "blockchain_transaction_hash": transaction.blockchain_hash,
            "updated_at": utc_now(),
        },
        allowed_statuses=CREDIT_ACTIVE_STATUSES,
    )
    record_audit(
        session,
        action="credits_retired",
        entity_type="credit",
        entity_id=credit_id,
        actor_id=actor.user_id,
        payload={"credit_id": credit_id, "amount": balance, "reason": reason.value},
    )
    await _commit(session, "retire")
    await session.refresh(credit)

    logger.info("Retired %s credits of lot %s (%s)", balance, credit_id, reason.value)
    return credit
