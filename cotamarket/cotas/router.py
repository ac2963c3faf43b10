"""
FastAPI Routers for cota publication and staff maintenance.
Domain errors propagate to the application exception handlers.
"""
from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy.orm import Session

from cotamarket.auth.dependencies import get_current_user, require_staff
from cotamarket.auth.models import User
from cotamarket.core.database import get_db
from cotamarket.core.logger import get_logger_with_correlation
from cotamarket.cotas.models import CotaStatus
from cotamarket.cotas.schemas import (
    CotaCreateRequest,
    CotaUpdateRequest,
    CotaStatusOverrideRequest,
    CotaResponse,
    CotaHistoryResponse,
)
from cotamarket.cotas import service

router = APIRouter(tags=["Cotas"])
admin_router = APIRouter(tags=["Admin - Cotas"])


@router.post("", response_model=CotaResponse, status_code=201)
def publish_cota(
    data: CotaCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    x_correlation_id: str = Header(default=None)
) -> CotaResponse:
    """
    Publishes a cota for sale.

    `entry_percentage` and `monthly_rate` are derived server side;
    the rate stays empty when the schedule has no positive solution.
    """
    correlation_id = x_correlation_id or str(uuid4())
    logger = get_logger_with_correlation(correlation_id)
    logger.info(f"Publishing cota for seller {current_user.id}")

    cota = service.publish_cota(db, current_user, data, correlation_id)
    return CotaResponse.model_validate(cota)


@router.get("", response_model=List[CotaResponse])
def list_available_cotas(
    status: Optional[CotaStatus] = CotaStatus.AVAILABLE,
    limit: int = 50,
    db: Session = Depends(get_db)
) -> List[CotaResponse]:
    return [CotaResponse.model_validate(c) for c in service.list_cotas(db, status, limit)]


@router.get("/mine", response_model=List[CotaResponse])
def list_my_cotas(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> List[CotaResponse]:
    return [CotaResponse.model_validate(c) for c in service.list_seller_cotas(db, current_user.id)]


@router.get("/{cota_id}", response_model=CotaResponse)
def get_cota(cota_id: str, db: Session = Depends(get_db)) -> CotaResponse:
    return CotaResponse.model_validate(service.get_cota(db, cota_id))


@router.patch("/{cota_id}", response_model=CotaResponse)
def edit_my_cota(
    cota_id: str,
    data: CotaUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    x_correlation_id: str = Header(default=None)
) -> CotaResponse:
    """Seller edit, allowed only while the cota is AVAILABLE."""
    correlation_id = x_correlation_id or str(uuid4())

    try:
        cota = service.update_cota_by_seller(db, current_user, cota_id, data, correlation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return CotaResponse.model_validate(cota)


@admin_router.patch("/{cota_id}", response_model=CotaResponse)
def staff_edit_cota(
    cota_id: str,
    data: CotaUpdateRequest,
    notes: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
    x_correlation_id: str = Header(default=None)
) -> CotaResponse:
    """Staff correction of financial fields. Every changed field is recorded in the cota history."""
    correlation_id = x_correlation_id or str(uuid4())
    logger = get_logger_with_correlation(correlation_id)

    try:
        cota, changes = service.update_cota_by_staff(db, staff, cota_id, data, notes, correlation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Staff edit on cota {cota_id}: {len(changes)} field(s) changed")
    return CotaResponse.model_validate(cota)


@admin_router.post("/{cota_id}/status", response_model=CotaResponse)
def override_status(
    cota_id: str,
    data: CotaStatusOverrideRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
    x_correlation_id: str = Header(default=None)
) -> CotaResponse:
    """
    **Manual escape hatch.** Sets the cota status directly, without touching proposals.
    Typical use: relisting a cota after its reserving proposal was rejected.
    """
    correlation_id = x_correlation_id or str(uuid4())
    cota = service.override_cota_status(db, staff, cota_id, data.status, data.notes, correlation_id)
    return CotaResponse.model_validate(cota)


@admin_router.get("/{cota_id}/history", response_model=List[CotaHistoryResponse])
def cota_history(
    cota_id: str,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff)
) -> List[CotaHistoryResponse]:
    return [CotaHistoryResponse.model_validate(h) for h in service.get_cota_history(db, cota_id)]
