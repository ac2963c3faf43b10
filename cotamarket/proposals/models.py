"""
Data models for purchase proposals and their status history.
Proposals are never deleted; history rows are never edited.
"""
from sqlalchemy import Integer, Float, String, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
import enum
from cotamarket.core.database import Base, get_enum_values


class ProposalStatus(str, enum.Enum):
    """Review pipeline of a proposal. REJECTED and COMPLETED are terminal."""
    UNDER_REVIEW = "UNDER_REVIEW"
    PRE_APPROVED = "PRE_APPROVED"
    APPROVED = "APPROVED"
    TRANSFER_STARTED = "TRANSFER_STARTED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


PROPOSAL_STATUS_LABELS = {
    ProposalStatus.UNDER_REVIEW: "Em Análise",
    ProposalStatus.PRE_APPROVED: "Pré-Aprovada",
    ProposalStatus.APPROVED: "Aprovada",
    ProposalStatus.TRANSFER_STARTED: "Transferência Iniciada",
    ProposalStatus.COMPLETED: "Concluída",
    ProposalStatus.REJECTED: "Rejeitada",
}

# Order used by progress timelines; REJECTED is off the timeline
TIMELINE = (
    ProposalStatus.UNDER_REVIEW,
    ProposalStatus.PRE_APPROVED,
    ProposalStatus.APPROVED,
    ProposalStatus.TRANSFER_STARTED,
    ProposalStatus.COMPLETED,
)


class BuyerType(str, enum.Enum):
    """Individual person (PF) or company (PJ) buying the cota."""
    PF = "PF"
    PJ = "PJ"


class Proposal(Base):
    """A buyer's offer for one cota, optionally bundled with others under a group_id."""

    __tablename__ = "proposals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    cota_id: Mapped[str] = mapped_column(String(36), ForeignKey("cotas.id"), nullable=False, index=True)
    buyer_pf_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    buyer_type: Mapped[BuyerType] = mapped_column(
        "buyer_type",
        Enum(BuyerType, values_callable=get_enum_values),
        nullable=False,
        default=BuyerType.PF
    )
    buyer_entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    group_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    status: Mapped[ProposalStatus] = mapped_column(
        "status",
        Enum(ProposalStatus, values_callable=get_enum_values),
        nullable=False,
        default=ProposalStatus.UNDER_REVIEW,
        index=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transfer_fee: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def status_label(self) -> str:
        return PROPOSAL_STATUS_LABELS[self.status]

    @property
    def timeline_position(self) -> int:
        """Index on the progress timeline, -1 for REJECTED."""
        if self.status == ProposalStatus.REJECTED:
            return -1
        return TIMELINE.index(self.status)

    def __repr__(self):
        return f"<Proposal(id={self.id}, cota_id={self.cota_id}, status={self.status})>"


class ProposalHistory(Base):
    """One row per successful status change, including creation (old_status is NULL)."""

    __tablename__ = "proposal_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[str] = mapped_column(String(36), ForeignKey("proposals.id"), nullable=False, index=True)
    old_status: Mapped[Optional[ProposalStatus]] = mapped_column(
        Enum(ProposalStatus, values_callable=get_enum_values),
        nullable=True
    )
    new_status: Mapped[ProposalStatus] = mapped_column(
        Enum(ProposalStatus, values_callable=get_enum_values),
        nullable=False
    )
    changed_by: Mapped[str] = mapped_column(String(36), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
