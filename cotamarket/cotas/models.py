"""
Data models for consortium cotas listed on the marketplace.
Cotas are never physically deleted once a proposal references them.
"""
from sqlalchemy import Integer, Float, String, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
import enum
from cotamarket.core.database import Base, get_enum_values


class CotaStatus(str, enum.Enum):
    """Availability of a cota. Changed only by proposal sync or a staff override."""
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    REMOVED = "REMOVED"


COTA_STATUS_LABELS = {
    CotaStatus.AVAILABLE: "Disponível",
    CotaStatus.RESERVED: "Reservada",
    CotaStatus.SOLD: "Vendida",
    CotaStatus.REMOVED: "Removida",
}


class Cota(Base):
    """Sellable consortium position and its financial attributes."""

    __tablename__ = "cotas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    seller_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    administrator: Mapped[str] = mapped_column(String(150), nullable=False)
    credit_amount: Mapped[float] = mapped_column(Float, nullable=False)
    entry_amount: Mapped[float] = mapped_column(Float, nullable=False)
    entry_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    outstanding_balance: Mapped[float] = mapped_column(Float, nullable=False)
    n_installments: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_value: Mapped[float] = mapped_column(Float, nullable=False)
    monthly_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[CotaStatus] = mapped_column(
        "status",
        Enum(CotaStatus, values_callable=get_enum_values),
        nullable=False,
        default=CotaStatus.AVAILABLE,
        index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def status_label(self) -> str:
        return COTA_STATUS_LABELS[self.status]

    def __repr__(self):
        return f"<Cota(id={self.id}, credit={self.credit_amount}, status={self.status})>"


class CotaHistory(Base):
    """Append-only change record for staff edits and status overrides."""

    __tablename__ = "cota_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cota_id: Mapped[str] = mapped_column(String(36), ForeignKey("cotas.id"), nullable=False, index=True)
    field_changed: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str] = mapped_column(String(36), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
