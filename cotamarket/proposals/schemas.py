"""
Pydantic schemas for proposal submission, review and group views.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from cotamarket.proposals.groups import GroupStatus
from cotamarket.proposals.models import BuyerType, ProposalStatus


class ProposalCreateRequest(BaseModel):
    """Purchase interest in one cota, or several bundled as a composition."""
    cota_ids: List[str] = Field(..., min_length=1, max_length=20, description="Cotas to buy")
    buyer_type: BuyerType = Field(BuyerType.PF, description="Buy as the user (PF) or as one of the user's companies (PJ)")
    buyer_entity_id: Optional[str] = Field(None, description="Company id, required for PJ purchases")

    @field_validator('cota_ids')
    @classmethod
    def unique_cotas(cls, v: List[str]) -> List[str]:
        # Keep the submission order, drop repeats
        return list(dict.fromkeys(v))


class ProposalTransitionRequest(BaseModel):
    """Staff review action."""
    status: ProposalStatus = Field(..., description="Requested new status")
    notes: Optional[str] = Field(None, max_length=1000, description="History note")
    rejection_reason: Optional[str] = Field(None, max_length=1000, description="Required when rejecting")


class TransferFeeRequest(BaseModel):
    transfer_fee: float = Field(..., ge=0, description="Transfer fee charged by the administrator (R$)")


class ProposalResponse(BaseModel):
    id: str
    cota_id: str
    buyer_pf_id: str
    buyer_type: BuyerType
    buyer_entity_id: str
    group_id: Optional[str]
    status: ProposalStatus
    status_label: str
    timeline_position: int
    rejection_reason: Optional[str]
    transfer_fee: Optional[float]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProposalHistoryResponse(BaseModel):
    old_status: Optional[ProposalStatus]
    new_status: ProposalStatus
    changed_by: str
    notes: Optional[str]
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProposalGroupResponse(BaseModel):
    """Derived view of a composition; never persisted."""
    group_id: str
    status: GroupStatus
    label: str
    description: str
    total: int
    counts: Dict[str, int]
    can_proceed_to_payment: bool
    proposals: List[ProposalResponse]
