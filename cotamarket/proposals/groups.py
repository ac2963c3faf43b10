"""
Read-side aggregation of proposals sharing a group_id (a "composition").
Nothing here writes; member proposals are never mutated.
"""
import enum
from typing import Any, Dict, Iterable, List

from cotamarket.proposals.models import Proposal, ProposalStatus


class GroupStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


APPROVED_OR_LATER = frozenset({
    ProposalStatus.APPROVED,
    ProposalStatus.TRANSFER_STARTED,
    ProposalStatus.COMPLETED,
})
IN_APPROVAL = frozenset({ProposalStatus.APPROVED, ProposalStatus.PRE_APPROVED})

GROUP_MESSAGES: Dict[GroupStatus, Dict[str, str]] = {
    GroupStatus.REJECTED: {
        "label": "Atenção Necessária",
        "description": "Uma ou mais propostas foram rejeitadas. Você pode remover as rejeitadas e continuar com as aprovadas.",
    },
    GroupStatus.COMPLETED: {
        "label": "Concluída",
        "description": "Todas as cotas foram transferidas com sucesso!",
    },
    GroupStatus.APPROVED: {
        "label": "Aprovada",
        "description": "Todas as propostas foram aprovadas. Você pode prosseguir com o pagamento.",
    },
    GroupStatus.PARTIAL: {
        "label": "Parcialmente Aprovada",
        "description": "Algumas propostas ainda estão em análise.",
    },
    GroupStatus.PENDING: {
        "label": "Em Análise",
        "description": "Suas propostas estão sendo analisadas.",
    },
}


def derive_group_status(statuses: Iterable[ProposalStatus]) -> GroupStatus:
    """
    Rules, first match wins: any REJECTED; all COMPLETED; all at APPROVED or
    later; any APPROVED or PRE_APPROVED; otherwise PENDING. An empty group is PENDING.
    """
    statuses = list(statuses)
    if not statuses:
        return GroupStatus.PENDING

    if any(s == ProposalStatus.REJECTED for s in statuses):
        return GroupStatus.REJECTED
    if all(s == ProposalStatus.COMPLETED for s in statuses):
        return GroupStatus.COMPLETED
    if all(s in APPROVED_OR_LATER for s in statuses):
        return GroupStatus.APPROVED
    if any(s in IN_APPROVAL for s in statuses):
        return GroupStatus.PARTIAL
    return GroupStatus.PENDING


def count_statuses(statuses: Iterable[ProposalStatus]) -> Dict[str, int]:
    counts = {"approved": 0, "pending": 0, "completed": 0, "rejected": 0}
    for status in statuses:
        if status in IN_APPROVAL:
            counts["approved"] += 1
        elif status == ProposalStatus.UNDER_REVIEW:
            counts["pending"] += 1
        elif status in (ProposalStatus.TRANSFER_STARTED, ProposalStatus.COMPLETED):
            counts["completed"] += 1
        elif status == ProposalStatus.REJECTED:
            counts["rejected"] += 1
    return counts


def summarize_group(proposals: List[Proposal]) -> Dict[str, Any]:
    """Composite view of a group used for display and to gate the payment step."""
    statuses = [p.status for p in proposals]
    status = derive_group_status(statuses)

    return {
        "status": status,
        "label": GROUP_MESSAGES[status]["label"],
        "description": GROUP_MESSAGES[status]["description"],
        "total": len(proposals),
        "counts": count_statuses(statuses),
        "can_proceed_to_payment": status == GroupStatus.APPROVED,
    }
