"""
Domain exception hierarchy for the quota marketplace engine.
Every failure is terminal for the current request; nothing here is retried internally.
"""
from typing import Optional


class CotaMarketError(Exception):
    """Base exception for all engine errors."""

    code = "COTAMARKET_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsolvableRate(CotaMarketError):
    """Raised when the monthly rate cannot be derived from the installment schedule."""

    code = "UNSOLVABLE_RATE"

    def __init__(self, message: str = "Monthly rate could not be determined"):
        super().__init__(message)


class IllegalTransition(CotaMarketError):
    """Raised when a proposal status change is not reachable from the current status."""

    code = "ILLEGAL_TRANSITION"

    def __init__(self, current: Optional[str], requested: str):
        super().__init__(f"Illegal transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


class MissingReason(CotaMarketError):
    """Raised when a rejection is attempted without a reason."""

    code = "MISSING_REASON"

    def __init__(self, message: str = "A rejection reason is required"):
        super().__init__(message)


class ConflictingReservation(CotaMarketError):
    """Raised when the quota was reserved by another proposal before this approval committed."""

    code = "CONFLICTING_RESERVATION"

    def __init__(self, cota_id: str):
        super().__init__(f"Cota {cota_id} was just reserved by another proposal")
        self.cota_id = cota_id


class PreconditionViolation(CotaMarketError):
    """Raised when a proposal cannot be created against the requested quota."""

    code = "PRECONDITION_VIOLATION"


class SelfPurchase(PreconditionViolation):
    code = "SELF_PURCHASE"

    def __init__(self, cota_id: str):
        super().__init__(f"Sellers cannot buy their own cota ({cota_id})")
        self.cota_id = cota_id


class CotaUnavailable(PreconditionViolation):
    code = "COTA_UNAVAILABLE"

    def __init__(self, cota_id: str, status: str):
        super().__init__(f"Cota {cota_id} is not available for proposals (status={status})")
        self.cota_id = cota_id
        self.status = status


class MissingBuyerEntity(PreconditionViolation):
    code = "MISSING_BUYER_ENTITY"

    def __init__(self, message: str = "A valid company must be selected for PJ purchases"):
        super().__init__(message)


class EntityNotFound(CotaMarketError):
    """Raised when a referenced cota or proposal does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDenied(CotaMarketError):
    """Raised when the actor may not perform the requested write."""

    code = "PERMISSION_DENIED"
