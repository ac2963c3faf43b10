"""
Pydantic schemas for cota publication, edits and staff overrides.
Derived fields (entry percentage, monthly rate) are never accepted from clients.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from cotamarket.cotas.models import CotaStatus


class CotaCreateRequest(BaseModel):
    """Cota publication payload."""
    administrator: str = Field(..., min_length=2, max_length=150, description="Consortium administrator")
    credit_amount: float = Field(..., gt=0, description="Consortium credit (R$)")
    entry_amount: float = Field(..., ge=0, description="Amount asked from the buyer upfront (R$)")
    outstanding_balance: float = Field(..., gt=0, description="Remaining balance (R$)")
    n_installments: int = Field(..., ge=1, le=420, description="Remaining installments")
    installment_value: float = Field(..., gt=0, description="Value of each installment (R$)")

    @model_validator(mode="after")
    def validate_entry(self) -> "CotaCreateRequest":
        if self.entry_amount > self.credit_amount:
            raise ValueError("Entry amount cannot exceed the credit amount")
        return self


class CotaUpdateRequest(BaseModel):
    """Partial update of the financial attributes. Omitted fields keep their value."""
    administrator: Optional[str] = Field(None, min_length=2, max_length=150)
    credit_amount: Optional[float] = Field(None, gt=0)
    entry_amount: Optional[float] = Field(None, ge=0)
    outstanding_balance: Optional[float] = Field(None, gt=0)
    n_installments: Optional[int] = Field(None, ge=1, le=420)
    installment_value: Optional[float] = Field(None, gt=0)


class CotaStatusOverrideRequest(BaseModel):
    """Manual status correction by staff, bypassing the proposal lifecycle."""
    status: CotaStatus
    notes: Optional[str] = Field(None, max_length=500, description="Why the status was corrected")


class CotaResponse(BaseModel):
    id: str
    seller_id: str
    administrator: str
    credit_amount: float
    entry_amount: float
    entry_percentage: float
    outstanding_balance: float
    n_installments: int
    installment_value: float
    monthly_rate: Optional[float]
    status: CotaStatus
    status_label: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CotaHistoryResponse(BaseModel):
    field_changed: str
    old_value: Optional[str]
    new_value: Optional[str]
    changed_by: str
    notes: Optional[str]
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)
