"""
Unit tests for the proposal state machine.
Checks the whole transition graph against the linear review chain.
"""
import itertools
import pytest
from cotamarket.core.exceptions import IllegalTransition, MissingReason
from cotamarket.proposals.lifecycle import (
    NEXT_STATUS,
    TERMINAL_STATUSES,
    allowed_transitions,
    is_valid_transition,
    validate_transition,
    default_note,
)
from cotamarket.proposals.models import Proposal, ProposalStatus as S

CHAIN = [S.UNDER_REVIEW, S.PRE_APPROVED, S.APPROVED, S.TRANSFER_STARTED, S.COMPLETED]


def expected_valid(current: S, requested: S) -> bool:
    if current in (S.COMPLETED, S.REJECTED):
        return False
    if requested == S.REJECTED:
        return True
    return CHAIN.index(requested) == CHAIN.index(current) + 1 if requested in CHAIN else False


@pytest.mark.parametrize("current, requested", list(itertools.product(S, S)))
def test_transition_graph_closure(current: S, requested: S):
    """A move is legal iff it is the next chain step, or a rejection from a non-terminal state."""
    reason = "Documentação incompleta" if requested == S.REJECTED else None

    if expected_valid(current, requested):
        validate_transition(current, requested, reason)
        assert is_valid_transition(current, requested)
    else:
        with pytest.raises(IllegalTransition):
            validate_transition(current, requested, reason)
        assert not is_valid_transition(current, requested)


def test_creation_only_reaches_under_review():
    assert allowed_transitions(None) == {S.UNDER_REVIEW}
    validate_transition(None, S.UNDER_REVIEW)

    for status in set(S) - {S.UNDER_REVIEW}:
        with pytest.raises(IllegalTransition):
            validate_transition(None, status)


def test_terminal_states_have_no_exit():
    assert TERMINAL_STATUSES == {S.COMPLETED, S.REJECTED}
    for status in TERMINAL_STATUSES:
        assert allowed_transitions(status) == frozenset()


def test_next_status_is_linear():
    assert [NEXT_STATUS[s] for s in CHAIN[:-1]] == CHAIN[1:]


@pytest.mark.parametrize("status", [S.UNDER_REVIEW, S.PRE_APPROVED, S.APPROVED, S.TRANSFER_STARTED])
@pytest.mark.parametrize("reason", [None, "", "   "])
def test_rejection_requires_reason(status: S, reason):
    with pytest.raises(MissingReason):
        validate_transition(status, S.REJECTED, reason)


def test_illegal_transition_carries_both_states():
    with pytest.raises(IllegalTransition) as exc_info:
        validate_transition(S.UNDER_REVIEW, S.APPROVED)

    assert exc_info.value.current == "UNDER_REVIEW"
    assert exc_info.value.requested == "APPROVED"


def test_illegal_transition_wins_over_missing_reason():
    """Rejecting a completed proposal is illegal whether or not a reason is given."""
    with pytest.raises(IllegalTransition):
        validate_transition(S.COMPLETED, S.REJECTED, None)


def test_default_note_is_human_readable():
    assert default_note(S.PRE_APPROVED) == "Status alterado para Pré-Aprovada"
    assert default_note(S.TRANSFER_STARTED) == "Status alterado para Transferência Iniciada"


def test_timeline_position():
    assert [Proposal(status=s).timeline_position for s in CHAIN] == [0, 1, 2, 3, 4]
    assert Proposal(status=S.REJECTED).timeline_position == -1
    assert Proposal(status=S.TRANSFER_STARTED).status_label == "Transferência Iniciada"
