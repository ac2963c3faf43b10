"""
Business logic for cota valuation.
Recovers the implicit monthly interest rate of an amortizing consortium balance
(spreadsheet RATE equivalent) and computes the derived financial fields of a cota.
"""
import math
from typing import Any, Dict, Optional

from cotamarket.core.config import settings
from cotamarket.core.exceptions import UnsolvableRate
from cotamarket.core.logger import logger


def annuity_residual(rate: float, installments: int, payment: float, present_value: float) -> float:
    """
    Ordinary annuity identity with zero future value.

    Formula: f(r) = PV * (1+r)^n + PMT * ((1+r)^n - 1) / r
    """
    factor = (1 + rate) ** installments
    return present_value * factor + payment * (factor - 1) / rate


def _annuity_derivative(rate: float, installments: int, payment: float, present_value: float) -> float:
    factor = (1 + rate) ** installments
    growth = installments * (1 + rate) ** (installments - 1)
    return present_value * growth + payment * (growth * rate - factor + 1) / (rate * rate)


def solve_rate(
    installments: int,
    payment: float,
    present_value: float,
    guess: Optional[float] = None,
    max_iterations: Optional[int] = None,
    tolerance: Optional[float] = None
) -> float:
    """
    Newton-Raphson root finder for the periodic rate of an ordinary annuity.
    Returns the rate as a percentage (0.95 means 0.95% per period).

    Raises UnsolvableRate for degenerate schedules, a zero derivative, divergence
    out of (-0.99, 1.0), a non-positive root, or when no convergence happens
    within the iteration limit.
    """
    if installments <= 0 or payment >= 0 or present_value <= 0:
        raise UnsolvableRate(
            f"Degenerate schedule: installments={installments}, payment={payment}, present_value={present_value}"
        )

    rate = settings.RATE_SOLVER_GUESS if guess is None else guess
    max_iterations = settings.RATE_SOLVER_MAX_ITERATIONS if max_iterations is None else max_iterations
    tolerance = settings.RATE_SOLVER_TOLERANCE if tolerance is None else tolerance

    for _ in range(max_iterations):
        try:
            f = annuity_residual(rate, installments, payment, present_value)
            f_prime = _annuity_derivative(rate, installments, payment, present_value)
        except (OverflowError, ZeroDivisionError) as e:
            raise UnsolvableRate(f"Rate iteration broke down at rate={rate}: {e}") from e

        if f_prime == 0:
            raise UnsolvableRate("Zero derivative, no further progress possible")

        new_rate = rate - f / f_prime

        if abs(new_rate - rate) < tolerance:
            if new_rate > 0 and math.isfinite(new_rate):
                return new_rate * 100
            raise UnsolvableRate(f"Converged to a non-positive rate: {new_rate}")

        rate = new_rate

        # Prevent runaway values
        if not -0.99 < rate < 1.0:
            raise UnsolvableRate(f"Rate diverged out of bounds: {rate}")

    raise UnsolvableRate(f"No convergence after {max_iterations} iterations")


def calculate_monthly_rate(installments: int, payment: float, present_value: float) -> Optional[float]:
    """Write-path variant of solve_rate: an unsolvable schedule yields None instead of an error."""
    try:
        return solve_rate(installments, payment, present_value)
    except UnsolvableRate as e:
        logger.info(f"Monthly rate left empty: {e.message}")
        return None


def calculate_entry_percentage(entry_amount: float, credit_amount: float) -> float:
    """Entry as a percentage of the credit. Zero when there is no credit."""
    if credit_amount == 0:
        return 0.0
    return entry_amount / credit_amount * 100


def derive_financials(
    credit_amount: float,
    entry_amount: float,
    outstanding_balance: float,
    n_installments: int,
    installment_value: float
) -> Dict[str, Any]:
    """
    Computes every derived field of a cota from its raw financial attributes.
    All write paths (seller publish/edit, staff edit, batch recalculation) go through here.
    """
    return {
        "entry_percentage": calculate_entry_percentage(entry_amount, credit_amount),
        "monthly_rate": calculate_monthly_rate(n_installments, -installment_value, outstanding_balance),
    }
