"""
Pydantic schemas for the valuation simulator.
"""
from typing import Optional
from pydantic import BaseModel, Field


class ValuationRequest(BaseModel):
    """Financial attributes of a cota being priced before publication."""
    credit_amount: float = Field(..., ge=0, description="Consortium credit (R$)")
    entry_amount: float = Field(..., ge=0, description="Amount asked from the buyer upfront (R$)")
    outstanding_balance: float = Field(..., gt=0, description="Remaining balance to be paid (R$)")
    n_installments: int = Field(..., ge=1, le=420, description="Remaining installments")
    installment_value: float = Field(..., gt=0, description="Value of each installment (R$)")


class ValuationResponse(BaseModel):
    entry_percentage: float = Field(..., description="Entry as a percentage of the credit")
    monthly_rate: Optional[float] = Field(None, description="Implicit monthly rate (%), empty when unsolvable")
    total_to_pay: float = Field(..., description="Sum of the remaining installments (R$)")
