"""
Service tests for proposal creation and the review pipeline.
Validates preconditions, history, cota status sync and atomicity.
"""
import pytest
from unittest.mock import patch
from cotamarket.core.exceptions import (
    ConflictingReservation,
    CotaUnavailable,
    EntityNotFound,
    IllegalTransition,
    MissingBuyerEntity,
    MissingReason,
    PermissionDenied,
    SelfPurchase,
)
from cotamarket.cotas.models import CotaStatus
from cotamarket.cotas.service import get_cota, override_cota_status
from cotamarket.proposals.models import BuyerType, Proposal, ProposalHistory, ProposalStatus as S
from cotamarket.proposals.schemas import ProposalCreateRequest
from cotamarket.proposals.service import (
    create_proposals,
    transition_proposal,
    get_history,
    get_group,
    set_transfer_fee,
)


def submit(db, buyer, *cotas, **kwargs):
    data = ProposalCreateRequest(cota_ids=[c.id for c in cotas], **kwargs)
    return create_proposals(db, buyer, data)


def advance(db, staff, proposal, *statuses):
    for status in statuses:
        proposal = transition_proposal(db, staff, proposal.id, status)
    return proposal


def test_single_proposal_has_no_group(db, buyer, cota):
    [proposal] = submit(db, buyer, cota)

    assert proposal.status == S.UNDER_REVIEW
    assert proposal.group_id is None
    assert proposal.buyer_type == BuyerType.PF
    assert proposal.buyer_entity_id == buyer.id
    assert get_cota(db, cota.id).status == CotaStatus.AVAILABLE


def test_composition_shares_group_id(db, buyer, make_cota):
    cotas = [make_cota(), make_cota(credit_amount=300000.0), make_cota(entry_amount=0.0)]

    proposals = submit(db, buyer, *cotas)

    assert len(proposals) == 3
    group_ids = {p.group_id for p in proposals}
    assert len(group_ids) == 1 and None not in group_ids


def test_creation_appends_initial_history_entry(db, buyer, cota):
    [proposal] = submit(db, buyer, cota)

    [entry] = get_history(db, proposal.id)
    assert entry.old_status is None
    assert entry.new_status == S.UNDER_REVIEW
    assert entry.changed_by == buyer.id


def test_seller_cannot_buy_own_cota(db, seller, cota):
    with pytest.raises(SelfPurchase):
        submit(db, seller, cota)

    assert db.query(Proposal).count() == 0


def test_unavailable_cota_blocks_whole_composition(db, buyer, staff, make_cota):
    available = make_cota()
    removed = make_cota()
    override_cota_status(db, staff, removed.id, CotaStatus.REMOVED)

    with pytest.raises(CotaUnavailable):
        submit(db, buyer, available, removed)

    assert db.query(Proposal).count() == 0
    assert db.query(ProposalHistory).count() == 0


def test_pj_purchase_requires_company(db, buyer, cota):
    with pytest.raises(MissingBuyerEntity):
        submit(db, buyer, cota, buyer_type=BuyerType.PJ)


def test_pj_purchase_rejects_company_of_someone_else(db, other_buyer, company, cota):
    with pytest.raises(MissingBuyerEntity):
        submit(db, other_buyer, cota, buyer_type=BuyerType.PJ, buyer_entity_id=company.id)


def test_pj_purchase_with_own_company(db, buyer, company, cota):
    [proposal] = submit(db, buyer, cota, buyer_type=BuyerType.PJ, buyer_entity_id=company.id)

    assert proposal.buyer_type == BuyerType.PJ
    assert proposal.buyer_entity_id == company.id
    assert proposal.buyer_pf_id == buyer.id


def test_unknown_cota(db, buyer):
    with pytest.raises(EntityNotFound):
        create_proposals(db, buyer, ProposalCreateRequest(cota_ids=["missing"]))


def test_concurrent_submissions_are_allowed(db, buyer, other_buyer, cota):
    submit(db, buyer, cota)
    submit(db, other_buyer, cota)

    assert db.query(Proposal).filter(Proposal.cota_id == cota.id).count() == 2


def test_full_pipeline_reserves_then_sells(db, buyer, staff, cota):
    [proposal] = submit(db, buyer, cota)

    proposal = advance(db, staff, proposal, S.PRE_APPROVED)
    assert get_cota(db, cota.id).status == CotaStatus.AVAILABLE

    proposal = advance(db, staff, proposal, S.APPROVED)
    assert get_cota(db, cota.id).status == CotaStatus.RESERVED

    proposal = advance(db, staff, proposal, S.TRANSFER_STARTED, S.COMPLETED)
    assert proposal.status == S.COMPLETED
    assert get_cota(db, cota.id).status == CotaStatus.SOLD


def test_history_is_a_chain(db, buyer, staff, cota):
    [proposal] = submit(db, buyer, cota)
    advance(db, staff, proposal, S.PRE_APPROVED, S.APPROVED, S.TRANSFER_STARTED, S.COMPLETED)

    history = get_history(db, proposal.id)

    assert len(history) == 5
    assert history[0].old_status is None
    for previous, entry in zip(history, history[1:]):
        assert entry.old_status == previous.new_status
        assert entry.changed_by == staff.id
    assert history[-1].new_status == S.COMPLETED
    assert history[1].notes == "Status alterado para Pré-Aprovada"


def test_actor_notes_are_kept(db, buyer, staff, cota):
    [proposal] = submit(db, buyer, cota)

    transition_proposal(db, staff, proposal.id, S.PRE_APPROVED, notes="Extrato conferido")

    assert get_history(db, proposal.id)[-1].notes == "Extrato conferido"


def test_second_approval_conflicts(db, buyer, other_buyer, staff, cota):
    [p1] = submit(db, buyer, cota)
    [p2] = submit(db, other_buyer, cota)
    advance(db, staff, p1, S.PRE_APPROVED)
    advance(db, staff, p2, S.PRE_APPROVED)

    advance(db, staff, p1, S.APPROVED)
    with pytest.raises(ConflictingReservation):
        transition_proposal(db, staff, p2.id, S.APPROVED)

    db.expire_all()
    assert get_cota(db, cota.id).status == CotaStatus.RESERVED
    assert db.get(Proposal, p2.id).status == S.PRE_APPROVED
    assert [h.new_status for h in get_history(db, p2.id)] == [S.UNDER_REVIEW, S.PRE_APPROVED]


def test_failed_side_effect_leaves_everything_unchanged(db, buyer, staff, cota):
    [proposal] = submit(db, buyer, cota)
    advance(db, staff, proposal, S.PRE_APPROVED)
    history_before = db.query(ProposalHistory).count()

    with patch("cotamarket.proposals.service.apply_cota_status_sync", side_effect=RuntimeError("store down")):
        with pytest.raises(RuntimeError):
            transition_proposal(db, staff, proposal.id, S.APPROVED)

    db.expire_all()
    assert db.get(Proposal, proposal.id).status == S.PRE_APPROVED
    assert db.query(ProposalHistory).count() == history_before
    assert get_cota(db, cota.id).status == CotaStatus.AVAILABLE


@pytest.mark.parametrize("path", [
    [],
    [S.PRE_APPROVED],
    [S.PRE_APPROVED, S.APPROVED],
    [S.PRE_APPROVED, S.APPROVED, S.TRANSFER_STARTED],
])
def test_rejection_from_any_open_state(db, buyer, staff, cota, path):
    [proposal] = submit(db, buyer, cota)
    proposal = advance(db, staff, proposal, *path)
    cota_status = get_cota(db, cota.id).status

    with pytest.raises(MissingReason):
        transition_proposal(db, staff, proposal.id, S.REJECTED)

    reason = "  Cadastro do comprador reprovado  "
    proposal = transition_proposal(db, staff, proposal.id, S.REJECTED, rejection_reason=reason)

    assert proposal.status == S.REJECTED
    assert proposal.rejection_reason == reason
    assert get_history(db, proposal.id)[-1].notes == reason
    # Relisting is a manual staff action
    assert get_cota(db, cota.id).status == cota_status


def test_terminal_states_are_final(db, buyer, staff, make_cota):
    [rejected] = submit(db, buyer, make_cota())
    rejected = transition_proposal(db, staff, rejected.id, S.REJECTED, rejection_reason="Desistência")
    [completed] = submit(db, buyer, make_cota())
    completed = advance(db, staff, completed, S.PRE_APPROVED, S.APPROVED, S.TRANSFER_STARTED, S.COMPLETED)

    with pytest.raises(IllegalTransition):
        transition_proposal(db, staff, rejected.id, S.UNDER_REVIEW)
    with pytest.raises(IllegalTransition):
        transition_proposal(db, staff, completed.id, S.REJECTED, rejection_reason="Tarde demais")


def test_skipping_states_is_illegal(db, buyer, staff, cota):
    [proposal] = submit(db, buyer, cota)

    with pytest.raises(IllegalTransition):
        transition_proposal(db, staff, proposal.id, S.APPROVED)

    assert len(get_history(db, proposal.id)) == 1
    assert get_cota(db, cota.id).status == CotaStatus.AVAILABLE


def test_stale_status_is_not_overwritten(db, buyer, staff, cota):
    """A review validated against an outdated status must not commit."""
    [proposal] = submit(db, buyer, cota)
    db.query(Proposal).filter(Proposal.id == proposal.id).update(
        {Proposal.status: S.PRE_APPROVED}, synchronize_session=False
    )
    db.commit()

    with patch("cotamarket.proposals.service.get_proposal", return_value=proposal):
        proposal.status = S.UNDER_REVIEW
        with pytest.raises(IllegalTransition):
            transition_proposal(db, staff, proposal.id, S.PRE_APPROVED)

    db.expire_all()
    assert db.get(Proposal, proposal.id).status == S.PRE_APPROVED
    assert len(get_history(db, proposal.id)) == 1


def test_group_view(db, buyer, other_buyer, staff, make_cota):
    proposals = submit(db, buyer, make_cota(), make_cota(), make_cota())
    advance(db, staff, proposals[0], S.PRE_APPROVED, S.APPROVED)
    advance(db, staff, proposals[1], S.PRE_APPROVED)
    group_id = proposals[0].group_id

    group = get_group(db, buyer, group_id)
    assert group["status"].value == "PARTIAL"
    assert group["counts"] == {"approved": 2, "pending": 1, "completed": 0, "rejected": 0}
    assert group["can_proceed_to_payment"] is False

    assert get_group(db, staff, group_id)["total"] == 3
    with pytest.raises(PermissionDenied):
        get_group(db, other_buyer, group_id)
    with pytest.raises(EntityNotFound):
        get_group(db, buyer, "no-such-group")


def test_transfer_fee_is_staff_entered(db, buyer, staff, cota):
    [proposal] = submit(db, buyer, cota)

    proposal = set_transfer_fee(db, staff, proposal.id, 1500.0)
    assert proposal.transfer_fee == 1500.0

    transition_proposal(db, staff, proposal.id, S.REJECTED, rejection_reason="Desistência")
    with pytest.raises(PermissionDenied):
        set_transfer_fee(db, staff, proposal.id, 2000.0)
