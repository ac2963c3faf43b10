"""
FastAPI Routers for proposal submission and staff review.
Domain errors propagate to the application exception handlers.
"""
from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from cotamarket.auth.dependencies import get_current_user, require_staff
from cotamarket.auth.models import User
from cotamarket.core.database import get_db
from cotamarket.core.logger import get_logger_with_correlation
from cotamarket.proposals.models import ProposalStatus
from cotamarket.proposals.schemas import (
    ProposalCreateRequest,
    ProposalTransitionRequest,
    TransferFeeRequest,
    ProposalResponse,
    ProposalHistoryResponse,
    ProposalGroupResponse,
)
from cotamarket.proposals import service

router = APIRouter(tags=["Proposals"])
admin_router = APIRouter(tags=["Admin - Proposals"])


@router.post("", response_model=List[ProposalResponse], status_code=201)
def submit_proposals(
    data: ProposalCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    x_correlation_id: str = Header(default=None)
) -> List[ProposalResponse]:
    """
    Submits purchase proposals for one or more cotas.

    - **cota_ids**: more than one id creates a composition sharing a `group_id`
    - **buyer_type**: `PF` buys as the user, `PJ` as one of the user's companies
    - **buyer_entity_id**: company id, mandatory for `PJ`

    Every cota must be AVAILABLE and must not belong to the buyer.
    """
    correlation_id = x_correlation_id or str(uuid4())
    logger = get_logger_with_correlation(correlation_id)
    logger.info(f"Proposal submission by {current_user.id}: {len(data.cota_ids)} cota(s)")

    proposals = service.create_proposals(db, current_user, data, correlation_id)
    return [ProposalResponse.model_validate(p) for p in proposals]


@router.get("/mine", response_model=List[ProposalResponse])
def list_my_proposals(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> List[ProposalResponse]:
    return [ProposalResponse.model_validate(p) for p in service.list_buyer_proposals(db, current_user.id)]


@router.get("/groups/{group_id}", response_model=ProposalGroupResponse)
def get_group(
    group_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> ProposalGroupResponse:
    """Composition progress. `can_proceed_to_payment` is true only when every member is approved."""
    group = service.get_group(db, current_user, group_id)
    group["proposals"] = [ProposalResponse.model_validate(p) for p in group["proposals"]]
    return ProposalGroupResponse(**group)


@router.get("/{proposal_id}", response_model=ProposalResponse)
def get_proposal(
    proposal_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> ProposalResponse:
    return ProposalResponse.model_validate(service.get_visible_proposal(db, current_user, proposal_id))


@router.get("/{proposal_id}/history", response_model=List[ProposalHistoryResponse])
def get_proposal_history(
    proposal_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> List[ProposalHistoryResponse]:
    service.get_visible_proposal(db, current_user, proposal_id)
    return [ProposalHistoryResponse.model_validate(h) for h in service.get_history(db, proposal_id)]


@admin_router.get("", response_model=List[ProposalResponse])
def review_queue(
    status: Optional[ProposalStatus] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff)
) -> List[ProposalResponse]:
    return [ProposalResponse.model_validate(p) for p in service.list_proposals(db, status, limit)]


@admin_router.post("/{proposal_id}/transition", response_model=ProposalResponse)
def transition_proposal(
    proposal_id: str,
    data: ProposalTransitionRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
    x_correlation_id: str = Header(default=None)
) -> ProposalResponse:
    """
    **Review action.** Moves the proposal to the next pipeline status or rejects it.

    Approving reserves the cota; completing marks it sold. A 409 means another
    proposal reserved the cota first and the request must not be retried.
    """
    correlation_id = x_correlation_id or str(uuid4())
    logger = get_logger_with_correlation(correlation_id)
    logger.info(f"Transition requested by {staff.id}: proposal={proposal_id} -> {data.status.value}")

    proposal = service.transition_proposal(
        db,
        staff,
        proposal_id,
        data.status,
        notes=data.notes,
        rejection_reason=data.rejection_reason,
        correlation_id=correlation_id,
    )
    return ProposalResponse.model_validate(proposal)


@admin_router.patch("/{proposal_id}/transfer-fee", response_model=ProposalResponse)
def update_transfer_fee(
    proposal_id: str,
    data: TransferFeeRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
    x_correlation_id: str = Header(default=None)
) -> ProposalResponse:
    correlation_id = x_correlation_id or str(uuid4())
    proposal = service.set_transfer_fee(db, staff, proposal_id, data.transfer_fee, correlation_id)
    return ProposalResponse.model_validate(proposal)
