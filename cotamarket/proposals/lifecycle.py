"""
Proposal status state machine.

    UNDER_REVIEW -> PRE_APPROVED -> APPROVED -> TRANSFER_STARTED -> COMPLETED

REJECTED is a side exit from any of the first four states. REJECTED and
COMPLETED are terminal. Creation is the transition from no status (None)
to UNDER_REVIEW.
"""
from typing import Dict, FrozenSet, Optional

from cotamarket.core.exceptions import IllegalTransition, MissingReason
from cotamarket.proposals.models import PROPOSAL_STATUS_LABELS, ProposalStatus

NEXT_STATUS: Dict[ProposalStatus, ProposalStatus] = {
    ProposalStatus.UNDER_REVIEW: ProposalStatus.PRE_APPROVED,
    ProposalStatus.PRE_APPROVED: ProposalStatus.APPROVED,
    ProposalStatus.APPROVED: ProposalStatus.TRANSFER_STARTED,
    ProposalStatus.TRANSFER_STARTED: ProposalStatus.COMPLETED,
}

TERMINAL_STATUSES: FrozenSet[ProposalStatus] = frozenset({ProposalStatus.COMPLETED, ProposalStatus.REJECTED})


def allowed_transitions(current: Optional[ProposalStatus]) -> FrozenSet[ProposalStatus]:
    """Every status reachable in one step from `current` (None means the proposal does not exist yet)."""
    if current is None:
        return frozenset({ProposalStatus.UNDER_REVIEW})
    if current in TERMINAL_STATUSES:
        return frozenset()
    return frozenset({NEXT_STATUS[current], ProposalStatus.REJECTED})


def is_valid_transition(current: Optional[ProposalStatus], requested: ProposalStatus) -> bool:
    return requested in allowed_transitions(current)


def validate_transition(
    current: Optional[ProposalStatus],
    requested: ProposalStatus,
    rejection_reason: Optional[str] = None
) -> None:
    """
    Raises IllegalTransition when `requested` is not reachable from `current`,
    and MissingReason when a rejection comes without a non-blank reason.
    """
    if not is_valid_transition(current, requested):
        raise IllegalTransition(
            current.value if current is not None else None,
            requested.value,
        )

    if requested == ProposalStatus.REJECTED and not (rejection_reason and rejection_reason.strip()):
        raise MissingReason()


def default_note(status: ProposalStatus) -> str:
    """Human readable history note used when the actor gives none."""
    return f"Status alterado para {PROPOSAL_STATUS_LABELS[status]}"
