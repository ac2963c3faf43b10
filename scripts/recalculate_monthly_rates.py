"""
Recomputes monthly_rate and entry_percentage for every stored cota.
Run after changing solver settings or bulk-importing cotas:

    python scripts/recalculate_monthly_rates.py [--dry-run]
"""
import argparse
import sys
import os
from typing import Any, Dict, List, Optional

# Add project root to sys.path
sys.path.append(os.getcwd())

from sqlalchemy.orm import Session  # noqa: E402

from cotamarket.core.database import SessionLocal, init_db  # noqa: E402
from cotamarket.core.logger import logger, audit_log  # noqa: E402
from cotamarket.cotas.models import Cota  # noqa: E402
from cotamarket.valuation.service import derive_financials  # noqa: E402

CHANGE_THRESHOLD = 0.0001


def rate_changed(current: Optional[float], new: Optional[float]) -> bool:
    """Appearing or disappearing counts as a change; otherwise compare within the threshold."""
    if current is None or new is None:
        return (current is None) != (new is None)
    return abs(current - new) > CHANGE_THRESHOLD


def derived_changes(cota: Cota, derived: Dict[str, Any]) -> List[str]:
    """Derived fields whose stored value no longer matches the cota's financial attributes."""
    return [
        field for field in ("monthly_rate", "entry_percentage")
        if rate_changed(getattr(cota, field), derived[field])
    ]


def recalculate(db: Session, dry_run: bool = False) -> Dict[str, int]:
    summary = {"updated": 0, "skipped": 0, "failed": 0, "total": 0}

    cotas = db.query(Cota).all()
    summary["total"] = len(cotas)
    print(f"Found {len(cotas)} cotas in database\n")

    for cota in cotas:
        derived = derive_financials(
            cota.credit_amount,
            cota.entry_amount,
            cota.outstanding_balance,
            cota.n_installments,
            cota.installment_value,
        )
        new_rate = derived["monthly_rate"]
        label = (
            f"{cota.administrator}: {cota.n_installments}x R${cota.installment_value:.2f} "
            f"/ PV=R${cota.outstanding_balance:.2f}"
        )

        changed = derived_changes(cota, derived)
        if not changed:
            summary["skipped"] += 1
            continue

        rate_text = f"{new_rate:.4f}%" if new_rate is not None else "rate could not be calculated"
        print(f"[UPDATE] {label} -> {rate_text} ({', '.join(changed)})")
        if dry_run:
            summary["updated"] += 1
            continue

        try:
            cota.monthly_rate = new_rate
            cota.entry_percentage = derived["entry_percentage"]
            db.commit()
            summary["updated"] += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update cota {cota.id}: {e}")
            summary["failed"] += 1

    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        summary = recalculate(db, dry_run=args.dry_run)
    finally:
        db.close()

    if not args.dry_run:
        audit_log(action="cota_rates_recalculated", user="system", resource="cotas", details=summary)

    print("\nSummary:")
    for key in ("updated", "skipped", "failed", "total"):
        print(f"   {key.capitalize():<8} {summary[key]}")

    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
