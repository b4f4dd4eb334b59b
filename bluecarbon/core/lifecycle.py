"""
Status machines for projects, MRV submissions and credit lots.

Every allowed edge is listed here; handlers never compare statuses ad hoc.
The tables are plain data so they can be shared with clients (see
`transition_table()`).
"""

from typing import Any, Dict, FrozenSet, NamedTuple

from bluecarbon.core.exceptions import AuthorizationError, InvalidTransitionError
from bluecarbon.models.credit import CreditStatus
from bluecarbon.models.mrv import ReviewDecision, VerificationStatus
from bluecarbon.models.project import ProjectAction, ProjectStatus


class Transition(NamedTuple):
    sources: FrozenSet[str]
    target: str
    admin_only: bool


PROJECT_TRANSITIONS: Dict[ProjectAction, Transition] = {
    ProjectAction.SUBMIT: Transition(
        frozenset({ProjectStatus.DRAFT}), ProjectStatus.SUBMITTED, admin_only=False
    ),
    ProjectAction.START_REVIEW: Transition(
        frozenset({ProjectStatus.SUBMITTED}), ProjectStatus.UNDER_REVIEW, admin_only=True
    ),
    ProjectAction.APPROVE: Transition(
        frozenset({ProjectStatus.SUBMITTED, ProjectStatus.UNDER_REVIEW}), ProjectStatus.APPROVED, admin_only=True
    ),
    ProjectAction.REJECT: Transition(
        frozenset({ProjectStatus.SUBMITTED, ProjectStatus.UNDER_REVIEW}), ProjectStatus.REJECTED, admin_only=True
    ),
    ProjectAction.ACTIVATE: Transition(
        frozenset({ProjectStatus.APPROVED}), ProjectStatus.ACTIVE, admin_only=True
    ),
    ProjectAction.COMPLETE: Transition(
        frozenset({ProjectStatus.ACTIVE}), ProjectStatus.COMPLETED, admin_only=True
    ),
}

# Initial statuses an owner may create a project in
PROJECT_INITIAL_STATUSES = frozenset({ProjectStatus.DRAFT, ProjectStatus.SUBMITTED})

# Statuses that carry approved_by / approved_at
PROJECT_APPROVED_STATUSES = frozenset({ProjectStatus.APPROVED, ProjectStatus.ACTIVE, ProjectStatus.COMPLETED})

# Credits may only be minted against these
CREDIT_ELIGIBLE_PROJECT_STATUSES = PROJECT_APPROVED_STATUSES

# Awaiting an admin decision
PROJECT_REVIEW_QUEUE_STATUSES = frozenset({ProjectStatus.SUBMITTED, ProjectStatus.UNDER_REVIEW})

MRV_TRANSITIONS: Dict[ReviewDecision, Transition] = {
    ReviewDecision.VERIFIED: Transition(
        frozenset({VerificationStatus.PENDING}), VerificationStatus.VERIFIED, admin_only=True
    ),
    ReviewDecision.REJECTED: Transition(
        frozenset({VerificationStatus.PENDING}), VerificationStatus.REJECTED, admin_only=True
    ),
}

# A lot can be retired until it is retired
CREDIT_ACTIVE_STATUSES = frozenset({CreditStatus.ISSUED, CreditStatus.TRANSFERRED})

# Only lots still held in their issued state can be transferred out
CREDIT_TRANSFERABLE_STATUSES = frozenset({CreditStatus.ISSUED})

CREDIT_TRANSITIONS: Dict[CreditStatus, FrozenSet[CreditStatus]] = {
    CreditStatus.ISSUED: frozenset({CreditStatus.TRANSFERRED, CreditStatus.RETIRED}),
    CreditStatus.TRANSFERRED: frozenset({CreditStatus.RETIRED}),
    CreditStatus.RETIRED: frozenset(),
}


def project_transition(action: ProjectAction, current: ProjectStatus, is_admin: bool) -> ProjectStatus:
    """
    Resolve a project action to its target status.

    Raises:
        AuthorizationError: admin-only action requested by a non-admin
        InvalidTransitionError: action not allowed from the current status
    """
    transition = PROJECT_TRANSITIONS[action]
    if transition.admin_only and not is_admin:
        raise AuthorizationError(
            f"Only an admin can {action.value.replace('_', ' ')} a project",
            context={"action": action.value},
        )
    if current not in transition.sources:
        raise InvalidTransitionError(
            f"Cannot {action.value.replace('_', ' ')} a project in status '{current.value}'",
            context={"action": action.value, "status": current.value},
        )
    return ProjectStatus(transition.target)


def mrv_transition(decision: ReviewDecision, current: VerificationStatus) -> VerificationStatus:
    """Resolve an MRV review decision to its target status."""
    transition = MRV_TRANSITIONS[decision]
    if current not in transition.sources:
        raise InvalidTransitionError(
            f"MRV submission already {current.value}",
            context={"decision": decision.value, "status": current.value},
        )
    return VerificationStatus(transition.target)


def ensure_credit_transition(current: CreditStatus, target: CreditStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is a ledger edge."""
    if target not in CREDIT_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Credit in status '{current.value}' cannot become '{target.value}'",
            context={"status": current.value, "target": target.value},
        )


def project_targets(current: ProjectStatus) -> FrozenSet[ProjectStatus]:
    """All statuses reachable in one step from `current`."""
    return frozenset(
        ProjectStatus(t.target) for t in PROJECT_TRANSITIONS.values() if current in t.sources
    )


def transition_table() -> Dict[str, Dict[str, Any]]:
    """Serializable view of the status machines."""
    return {
        "project": {
            action.value: {
                "from": sorted(s.value for s in t.sources),
                "to": t.target.value,
                "admin_only": t.admin_only,
            }
            for action, t in PROJECT_TRANSITIONS.items()
        },
        "mrv": {
            decision.value: {
                "from": sorted(s.value for s in t.sources),
                "to": t.target.value,
                "admin_only": t.admin_only,
            }
            for decision, t in MRV_TRANSITIONS.items()
        },
        "credit": {
            status.value: sorted(t.value for t in targets)
            for status, targets in CREDIT_TRANSITIONS.items()
        },
    }
