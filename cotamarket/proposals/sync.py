"""
Cota status side effects of proposal transitions.

    (create) -> UNDER_REVIEW    no change, the cota stays AVAILABLE
    any      -> APPROVED        AVAILABLE -> RESERVED, conditional update
    any      -> COMPLETED       SOLD
    any      -> REJECTED        no change, relisting is a manual staff override

Runs inside the caller's transaction and never commits on its own.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from cotamarket.core.exceptions import ConflictingReservation, EntityNotFound
from cotamarket.core.logger import logger
from cotamarket.cotas.models import Cota, CotaStatus
from cotamarket.proposals.models import Proposal, ProposalStatus


def reserve_cota(db: Session, cota_id: str) -> None:
    """
    Flips the cota to RESERVED only if it is still AVAILABLE.
    The status check and the write are a single UPDATE, so two concurrent
    approvals cannot both succeed.
    """
    updated = (
        db.query(Cota)
        .filter(Cota.id == cota_id, Cota.status == CotaStatus.AVAILABLE)
        .update(
            {Cota.status: CotaStatus.RESERVED, Cota.updated_at: datetime.now(timezone.utc)},
            synchronize_session="fetch",
        )
    )
    if updated == 0:
        logger.warning(f"Reservation conflict on cota {cota_id}")
        raise ConflictingReservation(cota_id)


def mark_cota_sold(db: Session, cota_id: str) -> None:
    updated = (
        db.query(Cota)
        .filter(Cota.id == cota_id)
        .update(
            {Cota.status: CotaStatus.SOLD, Cota.updated_at: datetime.now(timezone.utc)},
            synchronize_session="fetch",
        )
    )
    if updated == 0:
        raise EntityNotFound("Cota", cota_id)


def apply_cota_status_sync(
    db: Session,
    proposal: Proposal,
    old_status: Optional[ProposalStatus],
    new_status: ProposalStatus
) -> Optional[CotaStatus]:
    """
    Applies the cota side effect of `old_status -> new_status`.
    Returns the cota status that was written, or None when the transition has no effect.
    """
    if new_status == ProposalStatus.APPROVED:
        reserve_cota(db, proposal.cota_id)
        effect: Optional[CotaStatus] = CotaStatus.RESERVED
    elif new_status == ProposalStatus.COMPLETED:
        mark_cota_sold(db, proposal.cota_id)
        effect = CotaStatus.SOLD
    else:
        effect = None

    if effect is not None:
        logger.info(
            f"Cota status synced: cota_id={proposal.cota_id} -> {effect.value} "
            f"(proposal {proposal.id}: {old_status.value if old_status else None} -> {new_status.value})"
        )
    return effect
