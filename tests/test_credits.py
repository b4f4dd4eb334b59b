"""Tests for the credit ledger: issue, transfer, split and retire."""

import re

import pytest
from sqlmodel import select

from bluecarbon.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidAmount,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from bluecarbon.handlers.credits import (
    get_credit_for,
    issue_credits,
    list_credit_transactions,
    list_credits,
    retire_credit,
    transfer_credit,
)
from bluecarbon.handlers.projects import create_project, transition_project
from bluecarbon.models.credit import Credit, CreditStatus, RetirementReason
from bluecarbon.models.project import ProjectAction
from bluecarbon.models.transaction import CreditTransaction, TransactionType

from conftest import project_data

SERIAL_PATTERN = re.compile(r"^BCC-2024-[0-9A-F]{16}$")


async def transactions_of(session, credit_id):
    result = await session.execute(
        select(CreditTransaction).where(CreditTransaction.credit_id == credit_id).order_by(CreditTransaction.id)
    )
    return list(result.scalars().all())


class TestIssue:

    async def test_issue_creates_lot_and_transaction(self, session, admin, issued_credit):
        assert SERIAL_PATTERN.match(issued_credit.serial_number)
        assert issued_credit.status == CreditStatus.ISSUED
        assert issued_credit.credit_amount == 100.0
        assert issued_credit.issued_amount == 100.0
        assert issued_credit.current_owner_id == admin.user_id
        assert issued_credit.issued_by == admin.user_id

        history = await transactions_of(session, issued_credit.id)
        assert [t.transaction_type for t in history] == [TransactionType.ISSUE]
        assert history[0].amount == 100.0
        assert history[0].blockchain_hash == issued_credit.blockchain_transaction_hash

    async def test_serials_are_unique(self, session, admin, approved_project):
        serials = {
            (await issue_credits(session, admin, approved_project.id, 1.0, vintage_year=2024)).serial_number
            for _ in range(5)
        }
        assert len(serials) == 5

    @pytest.mark.parametrize("amount", [0, -5.0])
    async def test_non_positive_amount_rejected(self, session, admin, approved_project, amount):
        with pytest.raises(InvalidAmount):
            await issue_credits(session, admin, approved_project.id, amount)

    async def test_project_must_be_approved(self, session, admin, ngo):
        project = await create_project(session, ngo, project_data())
        with pytest.raises(ValidationError) as exc_info:
            await issue_credits(session, admin, project.id, 10.0)
        assert exc_info.value.context["status"] == "submitted"

        result = await session.execute(select(Credit))
        assert result.scalars().all() == []

    async def test_active_project_is_eligible(self, session, admin, approved_project):
        await transition_project(session, admin, approved_project.id, ProjectAction.ACTIVATE)
        credit = await issue_credits(session, admin, approved_project.id, 5.0)
        assert credit.vintage_year >= 2024

    async def test_only_admin_issues(self, session, ngo, approved_project):
        with pytest.raises(AuthorizationError):
            await issue_credits(session, ngo, approved_project.id, 10.0)

    async def test_unknown_project(self, session, admin):
        with pytest.raises(NotFoundError):
            await issue_credits(session, admin, 999, 10.0)


class TestTransfer:

    async def test_full_transfer_moves_ownership(self, session, admin, ngo, issued_credit):
        outcome = await transfer_credit(session, admin, issued_credit.id, 100.0, ngo.user_id, price_per_credit=12.5)

        assert outcome.transferred_credit is None
        assert outcome.credit.current_owner_id == ngo.user_id
        assert outcome.credit.status == CreditStatus.TRANSFERRED
        assert outcome.credit.credit_amount == 100.0
        assert outcome.credit.version == 2

        tx = outcome.transaction
        assert tx.transaction_type == TransactionType.TRANSFER
        assert (tx.from_user_id, tx.to_user_id) == (admin.user_id, ngo.user_id)
        assert tx.price_per_credit == 12.5
        assert tx.source_credit_id is None

    async def test_recipient_by_email(self, session, admin, ngo, issued_credit):
        outcome = await transfer_credit(session, admin, issued_credit.id, 100.0, "ngo-1@example.org")
        assert outcome.credit.current_owner_id == ngo.user_id

    async def test_partial_transfer_splits_lot(self, session, admin, ngo, issued_credit):
        outcome = await transfer_credit(session, admin, issued_credit.id, 30.0, ngo.user_id)

        source, child = outcome.credit, outcome.transferred_credit
        assert source.credit_amount == 70.0
        assert source.issued_amount == 100.0
        assert source.status == CreditStatus.ISSUED
        assert source.current_owner_id == admin.user_id

        assert child.parent_credit_id == source.id
        assert child.credit_amount == 30.0
        assert child.status == CreditStatus.TRANSFERRED
        assert child.current_owner_id == ngo.user_id
        assert child.serial_number != source.serial_number
        assert (child.project_id, child.vintage_year) == (source.project_id, source.vintage_year)

        assert outcome.transaction.credit_id == child.id
        assert outcome.transaction.source_credit_id == source.id
        assert outcome.transaction.amount == 30.0

        source_history = await list_credit_transactions(session, admin, source.id)
        assert [t.transaction_type for t in source_history] == [TransactionType.ISSUE, TransactionType.TRANSFER]

    async def test_split_lots_retire_independently(self, session, admin, ngo, buyer, issued_credit):
        outcome = await transfer_credit(session, admin, issued_credit.id, 40.0, ngo.user_id)
        child_id = outcome.transferred_credit.id

        rest = await transfer_credit(session, admin, issued_credit.id, 60.0, buyer.user_id)
        assert rest.credit.current_owner_id == buyer.user_id
        assert rest.credit.status == CreditStatus.TRANSFERRED

        retired = await retire_credit(session, ngo, child_id, RetirementReason.VOLUNTARY_OFFSET)
        assert retired.status == CreditStatus.RETIRED
        assert retired.credit_amount == 40.0

        history = await list_credit_transactions(session, ngo, child_id)
        assert [t.transaction_type for t in history] == [TransactionType.TRANSFER, TransactionType.RETIRE]

    async def test_received_lot_cannot_be_passed_on(self, session, admin, ngo, buyer, issued_credit):
        await transfer_credit(session, admin, issued_credit.id, 100.0, ngo.user_id)
        before = await transactions_of(session, issued_credit.id)

        with pytest.raises(InvalidTransitionError):
            await transfer_credit(session, ngo, issued_credit.id, 100.0, buyer.user_id)

        assert len(await transactions_of(session, issued_credit.id)) == len(before)
        assert (await session.get(Credit, issued_credit.id)).current_owner_id == ngo.user_id

    async def test_received_child_lot_cannot_be_passed_on(self, session, admin, ngo, buyer, issued_credit):
        outcome = await transfer_credit(session, admin, issued_credit.id, 40.0, ngo.user_id)
        with pytest.raises(InvalidTransitionError):
            await transfer_credit(session, ngo, outcome.transferred_credit.id, 10.0, buyer.user_id)

    async def test_amount_above_balance_rejected_before_write(self, session, admin, ngo, issued_credit):
        credit_id = issued_credit.id
        with pytest.raises(InvalidAmount) as exc_info:
            await transfer_credit(session, admin, credit_id, 100.5, ngo.user_id)
        assert exc_info.value.context["balance"] == 100.0

        assert len(await transactions_of(session, credit_id)) == 1
        assert (await session.get(Credit, credit_id)).credit_amount == 100.0

    @pytest.mark.parametrize("amount", [0, -1])
    async def test_non_positive_transfer_rejected(self, session, admin, ngo, issued_credit, amount):
        with pytest.raises(InvalidAmount):
            await transfer_credit(session, admin, issued_credit.id, amount, ngo.user_id)

    async def test_only_owner_transfers(self, session, ngo, buyer, issued_credit):
        with pytest.raises(AuthorizationError):
            await transfer_credit(session, ngo, issued_credit.id, 10.0, buyer.user_id)

    async def test_unknown_recipient(self, session, admin, issued_credit):
        with pytest.raises(NotFoundError):
            await transfer_credit(session, admin, issued_credit.id, 10.0, "nobody@example.org")

    async def test_self_transfer_rejected(self, session, admin, issued_credit):
        with pytest.raises(ValidationError):
            await transfer_credit(session, admin, issued_credit.id, 10.0, admin.user_id)

    async def test_retired_credit_cannot_transfer(self, session, admin, ngo, issued_credit):
        await retire_credit(session, admin, issued_credit.id, RetirementReason.EVENT_OFFSET)
        before = await transactions_of(session, issued_credit.id)

        with pytest.raises(InvalidTransitionError):
            await transfer_credit(session, admin, issued_credit.id, 1.0, ngo.user_id)

        assert len(await transactions_of(session, issued_credit.id)) == len(before)

    async def test_stale_expected_version_conflicts(self, session, admin, ngo, issued_credit):
        with pytest.raises(ConflictError):
            await transfer_credit(session, admin, issued_credit.id, 10.0, ngo.user_id, expected_version=7)

    async def test_concurrent_spend_only_one_wins(self, session_factory, session, admin, ngo, buyer, issued_credit):
        credit_id = issued_credit.id

        async with session_factory() as first, session_factory() as second:
            # Both sessions hold version 1 of the lot
            await get_credit_for(second, admin, credit_id)
            await transfer_credit(first, admin, credit_id, 100.0, ngo.user_id)

            with pytest.raises(ConflictError):
                await transfer_credit(second, admin, credit_id, 100.0, buyer.user_id)

        async with session_factory() as check:
            stored = await check.get(Credit, credit_id)
            assert stored.status == CreditStatus.TRANSFERRED
            assert stored.current_owner_id == ngo.user_id
            assert stored.version == 2
            assert [t.transaction_type for t in await transactions_of(check, credit_id)] == [
                TransactionType.ISSUE, TransactionType.TRANSFER
            ]


async def assert_transfer_totals_within_balance(session):
    credits = (await session.execute(select(Credit))).scalars().all()
    for credit in credits:
        transfers = [
            t for t in await transactions_of(session, credit.id) if t.transaction_type == TransactionType.TRANSFER
        ]
        total = sum(t.amount for t in transfers)
        assert total <= credit.credit_amount, credit.serial_number
        assert total <= credit.issued_amount, credit.serial_number


class TestCumulativeTransfers:

    async def test_chain_of_owners(self, session, admin, ngo, buyer, issued_credit):
        await transfer_credit(session, admin, issued_credit.id, 100.0, ngo.user_id)
        with pytest.raises(InvalidTransitionError):
            await transfer_credit(session, ngo, issued_credit.id, 100.0, buyer.user_id)

        await assert_transfer_totals_within_balance(session)

    async def test_repeated_partial_transfers(self, session, admin, ngo, buyer, issued_credit):
        await transfer_credit(session, admin, issued_credit.id, 40.0, ngo.user_id)
        await transfer_credit(session, admin, issued_credit.id, 40.0, buyer.user_id)

        source = await session.get(Credit, issued_credit.id)
        assert source.credit_amount == 20.0
        await assert_transfer_totals_within_balance(session)

        await transfer_credit(session, admin, issued_credit.id, 20.0, buyer.user_id)
        await assert_transfer_totals_within_balance(session)

        result = await session.execute(select(Credit.credit_amount))
        assert sorted(result.scalars().all()) == [20.0, 40.0, 40.0]


class TestRetire:

    async def test_retire_records_full_balance(self, session, admin, issued_credit):
        credit = await retire_credit(
            session, admin, issued_credit.id, RetirementReason.CORPORATE_NEUTRALITY, notes="FY24 offset"
        )

        assert credit.status == CreditStatus.RETIRED
        assert credit.retirement_reason == RetirementReason.CORPORATE_NEUTRALITY
        assert credit.retired_date is not None

        history = await transactions_of(session, credit.id)
        assert history[-1].transaction_type == TransactionType.RETIRE
        assert history[-1].amount == 100.0
        assert history[-1].notes == "FY24 offset"

    async def test_retired_is_terminal(self, session, admin, issued_credit):
        await retire_credit(session, admin, issued_credit.id, RetirementReason.VOLUNTARY_OFFSET)
        before = await transactions_of(session, issued_credit.id)

        with pytest.raises(InvalidTransitionError):
            await retire_credit(session, admin, issued_credit.id, RetirementReason.VOLUNTARY_OFFSET)

        after = await transactions_of(session, issued_credit.id)
        assert [t.id for t in after] == [t.id for t in before]
        assert [t.transaction_type for t in after].count(TransactionType.RETIRE) == 1

    async def test_new_owner_can_retire_transferred_lot(self, session, admin, ngo, issued_credit):
        await transfer_credit(session, admin, issued_credit.id, 100.0, ngo.user_id)
        credit = await retire_credit(session, ngo, issued_credit.id, RetirementReason.COMPLIANCE_OBLIGATION)
        assert credit.status == CreditStatus.RETIRED

    async def test_previous_owner_cannot_retire(self, session, admin, ngo, issued_credit):
        await transfer_credit(session, admin, issued_credit.id, 100.0, ngo.user_id)
        with pytest.raises(AuthorizationError):
            await retire_credit(session, admin, issued_credit.id, RetirementReason.VOLUNTARY_OFFSET)


class TestReadAndHistory:

    async def test_listing_is_scoped_to_owner(self, session, admin, ngo, issued_credit):
        await transfer_credit(session, admin, issued_credit.id, 25.0, ngo.user_id)

        assert [c.credit_amount for c in await list_credits(session, ngo)] == [25.0]
        assert len(await list_credits(session, admin)) == 2
        assert len(await list_credits(session, admin, owner_id=ngo.user_id)) == 1
        assert len(await list_credits(session, admin, status=CreditStatus.ISSUED)) == 1

    async def test_non_owner_cannot_read(self, session, ngo, issued_credit):
        with pytest.raises(NotFoundError):
            await get_credit_for(session, ngo, issued_credit.id)

    async def test_transactions_are_append_only(self, session, issued_credit):
        tx = (await transactions_of(session, issued_credit.id))[0]
        tx.amount = 1.0
        with pytest.raises(RuntimeError):
            await session.flush()
        await session.rollback()
