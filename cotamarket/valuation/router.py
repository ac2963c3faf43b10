"""
FastAPI Router for the valuation simulator.
Lets sellers preview the derived fields before publishing a cota.
"""
from uuid import uuid4

from fastapi import APIRouter, Header

from cotamarket.core.logger import get_logger_with_correlation
from cotamarket.valuation.schemas import ValuationRequest, ValuationResponse
from cotamarket.valuation.service import derive_financials

router = APIRouter(tags=["Valuation"])


@router.post("/simulate", response_model=ValuationResponse)
def simulate_valuation(
    data: ValuationRequest,
    x_correlation_id: str = Header(default=None)
) -> ValuationResponse:
    """
    Computes entry percentage and the implicit monthly rate of a schedule.

    - **outstanding_balance**: present value of the remaining debt
    - **n_installments** / **installment_value**: remaining schedule

    `monthly_rate` is empty when the schedule has no positive rate.
    """
    correlation_id = x_correlation_id or str(uuid4())
    logger = get_logger_with_correlation(correlation_id)

    derived = derive_financials(
        data.credit_amount,
        data.entry_amount,
        data.outstanding_balance,
        data.n_installments,
        data.installment_value,
    )
    logger.info(f"Valuation simulated: n={data.n_installments} rate={derived['monthly_rate']}")

    return ValuationResponse(
        entry_percentage=round(derived["entry_percentage"], 4),
        monthly_rate=round(derived["monthly_rate"], 6) if derived["monthly_rate"] is not None else None,
        total_to_pay=round(data.n_installments * data.installment_value, 2),
    )
