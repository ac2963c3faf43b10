"""
Business logic for cota publication and maintenance.
Every write recomputes the derived financial fields through the valuation service.
"""
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from cotamarket.auth.models import User
from cotamarket.core.database import transaction
from cotamarket.core.exceptions import EntityNotFound, PermissionDenied
from cotamarket.core.logger import logger, audit_log
from cotamarket.cotas.models import Cota, CotaHistory, CotaStatus
from cotamarket.cotas.schemas import CotaCreateRequest, CotaUpdateRequest
from cotamarket.valuation.service import derive_financials

FINANCIAL_FIELDS = (
    "administrator",
    "credit_amount",
    "entry_amount",
    "outstanding_balance",
    "n_installments",
    "installment_value",
)
DERIVED_FIELDS = ("entry_percentage", "monthly_rate")

Change = Tuple[str, Optional[str], Optional[str]]


def _stringify(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, CotaStatus):
        return value.value
    return str(value)


def _refresh_derived_fields(cota: Cota) -> None:
    derived = derive_financials(
        cota.credit_amount,
        cota.entry_amount,
        cota.outstanding_balance,
        cota.n_installments,
        cota.installment_value,
    )
    cota.entry_percentage = derived["entry_percentage"]
    cota.monthly_rate = derived["monthly_rate"]


def _apply_changes(cota: Cota, data: CotaUpdateRequest) -> List[Change]:
    """Applies the provided fields, recomputes derived ones, and returns what actually changed."""
    before = {field: getattr(cota, field) for field in FINANCIAL_FIELDS + DERIVED_FIELDS}

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(cota, field, value)

    if cota.entry_amount > cota.credit_amount:
        raise ValueError("Entry amount cannot exceed the credit amount")

    _refresh_derived_fields(cota)

    return [
        (field, _stringify(before[field]), _stringify(getattr(cota, field)))
        for field in FINANCIAL_FIELDS + DERIVED_FIELDS
        if before[field] != getattr(cota, field)
    ]


def get_cota(db: Session, cota_id: str) -> Cota:
    cota = db.query(Cota).filter(Cota.id == cota_id).first()
    if not cota:
        raise EntityNotFound("Cota", cota_id)
    return cota


def list_cotas(db: Session, status: Optional[CotaStatus] = CotaStatus.AVAILABLE, limit: int = 50) -> List[Cota]:
    """Public listing. Defaults to cotas open for proposals."""
    query = db.query(Cota)
    if status:
        query = query.filter(Cota.status == status)
    return query.order_by(Cota.created_at.desc()).limit(limit).all()


def list_seller_cotas(db: Session, seller_id: str) -> List[Cota]:
    return db.query(Cota).filter(Cota.seller_id == seller_id).order_by(Cota.created_at.desc()).all()


def publish_cota(
    db: Session,
    actor: User,
    data: CotaCreateRequest,
    correlation_id: Optional[str] = None
) -> Cota:
    """Lists a new cota as AVAILABLE, owned by the acting seller."""
    cota = Cota(
        seller_id=actor.id,
        status=CotaStatus.AVAILABLE,
        **data.model_dump()
    )
    _refresh_derived_fields(cota)

    with transaction(db):
        db.add(cota)
    db.refresh(cota)

    audit_log(
        action="cota_published",
        user=actor.id,
        resource=f"cota_id={cota.id}",
        details={
            "correlation_id": correlation_id,
            "credit_amount": cota.credit_amount,
            "monthly_rate": cota.monthly_rate,
        }
    )
    logger.info(f"Cota published: id={cota.id} rate={cota.monthly_rate}")
    return cota


def update_cota_by_seller(
    db: Session,
    actor: User,
    cota_id: str,
    data: CotaUpdateRequest,
    correlation_id: Optional[str] = None
) -> Cota:
    """
    Seller self-edit. Only the owner may edit, and only while the cota is AVAILABLE.
    """
    cota = get_cota(db, cota_id)

    if cota.seller_id != actor.id:
        raise PermissionDenied("Only the seller who published this cota can edit it")
    if cota.status != CotaStatus.AVAILABLE:
        raise PermissionDenied(
            f"Cota {cota.id} can no longer be edited by the seller (status={cota.status.value})"
        )

    with transaction(db):
        changes = _apply_changes(cota, data)
    db.refresh(cota)

    audit_log(
        action="cota_updated_by_seller",
        user=actor.id,
        resource=f"cota_id={cota.id}",
        details={"correlation_id": correlation_id, "fields": [field for field, _, _ in changes]}
    )
    return cota


def update_cota_by_staff(
    db: Session,
    actor: User,
    cota_id: str,
    data: CotaUpdateRequest,
    notes: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> Tuple[Cota, List[Change]]:
    """
    Staff correction of financial fields, allowed in any status.
    Each changed field, derived ones included, leaves one CotaHistory row.
    """
    cota = get_cota(db, cota_id)

    with transaction(db):
        changes = _apply_changes(cota, data)
        for field, old_value, new_value in changes:
            db.add(CotaHistory(
                cota_id=cota.id,
                field_changed=field,
                old_value=old_value,
                new_value=new_value,
                changed_by=actor.id,
                notes=notes,
            ))
    db.refresh(cota)

    if changes:
        audit_log(
            action="cota_updated_by_staff",
            user=actor.id,
            resource=f"cota_id={cota.id}",
            details={"correlation_id": correlation_id, "changes": changes}
        )
    else:
        logger.info(f"Staff edit with no changes: cota_id={cota.id}")

    return cota, changes


def override_cota_status(
    db: Session,
    actor: User,
    cota_id: str,
    new_status: CotaStatus,
    notes: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> Cota:
    """
    Manual status correction that bypasses the proposal lifecycle.
    Logged under its own audit action so it is never mistaken for an automatic sync.
    """
    cota = get_cota(db, cota_id)
    old_status = cota.status

    if old_status == new_status:
        logger.info(f"Status override is a no-op: cota_id={cota.id} status={new_status.value}")
        return cota

    with transaction(db):
        cota.status = new_status
        db.add(CotaHistory(
            cota_id=cota.id,
            field_changed="status",
            old_value=old_status.value,
            new_value=new_status.value,
            changed_by=actor.id,
            notes=notes,
        ))
    db.refresh(cota)

    audit_log(
        action="cota_status_override",
        user=actor.id,
        resource=f"cota_id={cota.id}",
        details={
            "correlation_id": correlation_id,
            "old_status": old_status.value,
            "new_status": new_status.value,
            "notes": notes,
        }
    )
    logger.warning(f"Manual cota status override: id={cota.id} {old_status.value} -> {new_status.value} by {actor.id}")
    return cota


def get_cota_history(db: Session, cota_id: str) -> List[CotaHistory]:
    get_cota(db, cota_id)
    return (
        db.query(CotaHistory)
        .filter(CotaHistory.cota_id == cota_id)
        .order_by(CotaHistory.changed_at, CotaHistory.id)
        .all()
    )
