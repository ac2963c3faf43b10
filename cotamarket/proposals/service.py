"""
Business logic for purchase proposals.
Every status change is one transaction: proposal update, history row and cota side effect
commit together or not at all.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4
from sqlalchemy.orm import Session

from cotamarket.auth.models import Company, User
from cotamarket.core.database import transaction
from cotamarket.core.exceptions import (
    CotaUnavailable,
    EntityNotFound,
    IllegalTransition,
    MissingBuyerEntity,
    PermissionDenied,
    SelfPurchase,
)
from cotamarket.core.logger import logger, audit_log
from cotamarket.cotas.models import CotaStatus
from cotamarket.cotas.service import get_cota
from cotamarket.proposals.groups import summarize_group
from cotamarket.proposals.lifecycle import default_note, validate_transition
from cotamarket.proposals.models import BuyerType, Proposal, ProposalHistory, ProposalStatus
from cotamarket.proposals.schemas import ProposalCreateRequest
from cotamarket.proposals.sync import apply_cota_status_sync

CREATION_NOTE = "Proposta enviada"


def _resolve_buyer_entity(db: Session, actor: User, buyer_type: BuyerType, buyer_entity_id: Optional[str]) -> str:
    """PF purchases are made by the actor; PJ purchases need a company the actor controls."""
    if buyer_type == BuyerType.PF:
        return actor.id

    if not buyer_entity_id:
        raise MissingBuyerEntity()

    company = db.query(Company).filter(
        Company.id == buyer_entity_id,
        Company.owner_id == actor.id
    ).first()
    if not company:
        raise MissingBuyerEntity(f"Company {buyer_entity_id} is not registered for this buyer")

    return company.id


def create_proposals(
    db: Session,
    actor: User,
    data: ProposalCreateRequest,
    correlation_id: Optional[str] = None
) -> List[Proposal]:
    """
    Submits one proposal per requested cota.
    All preconditions are checked for every cota before anything is written; bundles of
    more than one cota share a freshly generated group_id.
    """
    buyer_entity_id = _resolve_buyer_entity(db, actor, data.buyer_type, data.buyer_entity_id)

    cotas = [get_cota(db, cota_id) for cota_id in data.cota_ids]
    for cota in cotas:
        if cota.seller_id == actor.id:
            raise SelfPurchase(cota.id)
        if cota.status != CotaStatus.AVAILABLE:
            raise CotaUnavailable(cota.id, cota.status.value)

    group_id = str(uuid4()) if len(cotas) > 1 else None
    proposals: List[Proposal] = []

    with transaction(db):
        for cota in cotas:
            validate_transition(None, ProposalStatus.UNDER_REVIEW)

            proposal = Proposal(
                id=str(uuid4()),
                cota_id=cota.id,
                buyer_pf_id=actor.id,
                buyer_type=data.buyer_type,
                buyer_entity_id=buyer_entity_id,
                group_id=group_id,
                status=ProposalStatus.UNDER_REVIEW,
            )
            db.add(proposal)
            db.flush()

            db.add(ProposalHistory(
                proposal_id=proposal.id,
                old_status=None,
                new_status=ProposalStatus.UNDER_REVIEW,
                changed_by=actor.id,
                notes=CREATION_NOTE,
            ))
            apply_cota_status_sync(db, proposal, None, ProposalStatus.UNDER_REVIEW)
            proposals.append(proposal)

    for proposal in proposals:
        db.refresh(proposal)
        audit_log(
            action="proposal_created",
            user=actor.id,
            resource=f"proposal_id={proposal.id}",
            details={
                "correlation_id": correlation_id,
                "cota_id": proposal.cota_id,
                "group_id": group_id,
                "buyer_type": data.buyer_type.value,
            }
        )

    logger.info(f"{len(proposals)} proposal(s) created by {actor.id} group_id={group_id}")
    return proposals


def transition_proposal(
    db: Session,
    actor: User,
    proposal_id: str,
    new_status: ProposalStatus,
    notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> Proposal:
    """
    Moves a proposal one step through the review pipeline.

    Raises IllegalTransition, MissingReason or ConflictingReservation; on any failure
    the proposal, its history and the cota are left untouched.
    """
    proposal = get_proposal(db, proposal_id)
    old_status = proposal.status

    validate_transition(old_status, new_status, rejection_reason)

    reason = rejection_reason if new_status == ProposalStatus.REJECTED else None
    note = notes or reason or default_note(new_status)

    with transaction(db):
        # Guarded on the status we validated against, so a concurrent review cannot be overwritten
        updated = (
            db.query(Proposal)
            .filter(Proposal.id == proposal.id, Proposal.status == old_status)
            .update(
                {
                    Proposal.status: new_status,
                    Proposal.rejection_reason: reason,
                    Proposal.updated_at: datetime.now(timezone.utc),
                },
                synchronize_session="fetch",
            )
        )
        if updated == 0:
            raise IllegalTransition(old_status.value, new_status.value)

        db.add(ProposalHistory(
            proposal_id=proposal.id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor.id,
            notes=note,
        ))
        cota_effect = apply_cota_status_sync(db, proposal, old_status, new_status)

    db.refresh(proposal)

    audit_log(
        action="proposal_transition",
        user=actor.id,
        resource=f"proposal_id={proposal.id}",
        details={
            "correlation_id": correlation_id,
            "old_status": old_status.value,
            "new_status": new_status.value,
            "cota_id": proposal.cota_id,
            "cota_status": cota_effect.value if cota_effect else None,
        }
    )
    if cota_effect:
        audit_log(
            action="cota_status_sync",
            user=actor.id,
            resource=f"cota_id={proposal.cota_id}",
            details={"correlation_id": correlation_id, "proposal_id": proposal.id, "new_status": cota_effect.value}
        )

    logger.info(f"Proposal {proposal.id}: {old_status.value} -> {new_status.value}")
    return proposal


def set_transfer_fee(
    db: Session,
    actor: User,
    proposal_id: str,
    transfer_fee: float,
    correlation_id: Optional[str] = None
) -> Proposal:
    """Records the staff-entered transfer fee. Not allowed on rejected proposals."""
    proposal = get_proposal(db, proposal_id)
    if proposal.status == ProposalStatus.REJECTED:
        raise PermissionDenied(f"Proposal {proposal.id} was rejected")

    old_fee = proposal.transfer_fee
    with transaction(db):
        proposal.transfer_fee = transfer_fee
    db.refresh(proposal)

    audit_log(
        action="proposal_transfer_fee",
        user=actor.id,
        resource=f"proposal_id={proposal.id}",
        details={"correlation_id": correlation_id, "old_fee": old_fee, "new_fee": transfer_fee}
    )
    return proposal


def get_proposal(db: Session, proposal_id: str) -> Proposal:
    proposal = db.query(Proposal).filter(Proposal.id == proposal_id).first()
    if not proposal:
        raise EntityNotFound("Proposal", proposal_id)
    return proposal


def get_visible_proposal(db: Session, actor: User, proposal_id: str) -> Proposal:
    """Proposal lookup restricted to its buyer, the cota's seller and staff."""
    proposal = get_proposal(db, proposal_id)
    if actor.is_staff or proposal.buyer_pf_id == actor.id:
        return proposal
    if get_cota(db, proposal.cota_id).seller_id == actor.id:
        return proposal
    raise PermissionDenied("You are not a party to this proposal")


def get_history(db: Session, proposal_id: str) -> List[ProposalHistory]:
    """History in insertion order; the first entry is the creation (old_status is None)."""
    return (
        db.query(ProposalHistory)
        .filter(ProposalHistory.proposal_id == proposal_id)
        .order_by(ProposalHistory.id)
        .all()
    )


def list_buyer_proposals(db: Session, buyer_id: str) -> List[Proposal]:
    return (
        db.query(Proposal)
        .filter(Proposal.buyer_pf_id == buyer_id)
        .order_by(Proposal.created_at.desc())
        .all()
    )


def list_proposals(db: Session, status: Optional[ProposalStatus] = None, limit: int = 100) -> List[Proposal]:
    """Staff review queue, oldest first."""
    query = db.query(Proposal)
    if status:
        query = query.filter(Proposal.status == status)
    return query.order_by(Proposal.created_at).limit(limit).all()


def get_group(db: Session, actor: User, group_id: str) -> Dict[str, Any]:
    """Aggregated view of a composition, available to its buyer and to staff."""
    proposals = (
        db.query(Proposal)
        .filter(Proposal.group_id == group_id)
        .order_by(Proposal.created_at, Proposal.id)
        .all()
    )
    if not proposals:
        raise EntityNotFound("Proposal group", group_id)

    if not actor.is_staff and any(p.buyer_pf_id != actor.id for p in proposals):
        raise PermissionDenied("You are not the buyer of this composition")

    summary = summarize_group(proposals)
    summary["group_id"] = group_id
    summary["proposals"] = proposals
    return summary
