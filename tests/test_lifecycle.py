"""Tests for the project / MRV / credit status machines."""

import pytest

from bluecarbon.core.exceptions import AuthorizationError, InvalidTransitionError, ValidationError
from bluecarbon.core.lifecycle import (
    ensure_credit_transition,
    mrv_transition,
    project_targets,
    project_transition,
    transition_table,
)
from bluecarbon.models.credit import CreditStatus
from bluecarbon.models.mrv import ReviewDecision, VerificationStatus
from bluecarbon.models.project import ProjectAction, ProjectStatus


class TestProjectTransitions:
    """Project lifecycle edges."""

    @pytest.mark.parametrize("action,current,target", [
        (ProjectAction.START_REVIEW, ProjectStatus.SUBMITTED, ProjectStatus.UNDER_REVIEW),
        (ProjectAction.APPROVE, ProjectStatus.SUBMITTED, ProjectStatus.APPROVED),
        (ProjectAction.APPROVE, ProjectStatus.UNDER_REVIEW, ProjectStatus.APPROVED),
        (ProjectAction.REJECT, ProjectStatus.UNDER_REVIEW, ProjectStatus.REJECTED),
        (ProjectAction.ACTIVATE, ProjectStatus.APPROVED, ProjectStatus.ACTIVE),
        (ProjectAction.COMPLETE, ProjectStatus.ACTIVE, ProjectStatus.COMPLETED),
    ])
    def test_admin_edges(self, action, current, target):
        assert project_transition(action, current, is_admin=True) == target

    def test_owner_can_submit_draft(self):
        assert project_transition(ProjectAction.SUBMIT, ProjectStatus.DRAFT, is_admin=False) == ProjectStatus.SUBMITTED

    def test_non_admin_cannot_approve(self):
        with pytest.raises(AuthorizationError):
            project_transition(ProjectAction.APPROVE, ProjectStatus.SUBMITTED, is_admin=False)

    @pytest.mark.parametrize("current", [ProjectStatus.REJECTED, ProjectStatus.COMPLETED, ProjectStatus.DRAFT])
    def test_approve_outside_review_queue_is_invalid(self, current):
        with pytest.raises(InvalidTransitionError) as exc_info:
            project_transition(ProjectAction.APPROVE, current, is_admin=True)
        assert exc_info.value.context["status"] == current.value

    def test_rejected_is_terminal(self):
        assert project_targets(ProjectStatus.REJECTED) == frozenset()
        assert project_targets(ProjectStatus.COMPLETED) == frozenset()

    def test_invalid_transition_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            project_transition(ProjectAction.COMPLETE, ProjectStatus.APPROVED, is_admin=True)


class TestMRVTransitions:

    def test_pending_can_be_verified_or_rejected(self):
        assert mrv_transition(ReviewDecision.VERIFIED, VerificationStatus.PENDING) == VerificationStatus.VERIFIED
        assert mrv_transition(ReviewDecision.REJECTED, VerificationStatus.PENDING) == VerificationStatus.REJECTED

    @pytest.mark.parametrize("current", [VerificationStatus.VERIFIED, VerificationStatus.REJECTED])
    def test_reviewed_submission_cannot_change(self, current):
        with pytest.raises(InvalidTransitionError):
            mrv_transition(ReviewDecision.VERIFIED, current)


class TestCreditTransitions:

    def test_issued_lot_moves_and_transferred_lot_retires(self):
        ensure_credit_transition(CreditStatus.ISSUED, CreditStatus.TRANSFERRED)
        ensure_credit_transition(CreditStatus.ISSUED, CreditStatus.RETIRED)
        ensure_credit_transition(CreditStatus.TRANSFERRED, CreditStatus.RETIRED)

    def test_transferred_lot_cannot_transfer_again(self):
        with pytest.raises(InvalidTransitionError):
            ensure_credit_transition(CreditStatus.TRANSFERRED, CreditStatus.TRANSFERRED)

    @pytest.mark.parametrize("target", [CreditStatus.TRANSFERRED, CreditStatus.RETIRED, CreditStatus.ISSUED])
    def test_retired_is_terminal(self, target):
        with pytest.raises(InvalidTransitionError):
            ensure_credit_transition(CreditStatus.RETIRED, target)

    def test_nothing_returns_to_issued(self):
        with pytest.raises(InvalidTransitionError):
            ensure_credit_transition(CreditStatus.TRANSFERRED, CreditStatus.ISSUED)


def test_transition_table_is_serializable():
    table = transition_table()
    assert table["project"]["approve"] == {
        "from": ["submitted", "under_review"],
        "to": "approved",
        "admin_only": True,
    }
    assert table["mrv"]["rejected"]["from"] == ["pending"]
    assert table["credit"]["retired"] == []
    assert table["credit"]["transferred"] == ["retired"]
