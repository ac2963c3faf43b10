"""
Tests for the bulk rate recalculation script.
"""
import pytest
from scripts.recalculate_monthly_rates import recalculate, rate_changed
from cotamarket.valuation.service import solve_rate


@pytest.mark.parametrize("current, new, expected", [
    (None, 0.43, True),
    (0.43, None, True),
    (None, None, False),
    (0.43, 0.43005, False),
    (0.43, 0.4302, True),
])
def test_rate_changed(current, new, expected):
    assert rate_changed(current, new) is expected


def test_recalculate_fixes_stale_rates(db, make_cota):
    stale = make_cota()
    current = make_cota(installment_value=1300.0)
    unsolvable = make_cota(outstanding_balance=1000.0, n_installments=10, installment_value=50.0)
    stale.monthly_rate = 2.5
    db.commit()

    summary = recalculate(db)

    assert summary == {"updated": 1, "skipped": 2, "failed": 0, "total": 3}
    db.expire_all()
    assert stale.monthly_rate == pytest.approx(solve_rate(180, -1200.0, 150000.0))
    assert current.monthly_rate == pytest.approx(solve_rate(180, -1300.0, 150000.0))
    assert unsolvable.monthly_rate is None


def test_dry_run_writes_nothing(db, make_cota):
    cota = make_cota()
    cota.monthly_rate = None
    db.commit()

    summary = recalculate(db, dry_run=True)

    assert summary["updated"] == 1
    db.expire_all()
    assert cota.monthly_rate is None


def test_rate_is_cleared_when_schedule_becomes_unsolvable(db, make_cota):
    cota = make_cota(outstanding_balance=1000.0, n_installments=10, installment_value=50.0)
    cota.monthly_rate = 2.5
    db.commit()

    summary = recalculate(db)

    assert summary["updated"] == 1
    db.expire_all()
    assert cota.monthly_rate is None


def test_drifted_entry_percentage_is_corrected(db, make_cota):
    cota = make_cota()
    rate = cota.monthly_rate
    cota.entry_percentage = 99.0
    db.commit()

    summary = recalculate(db)

    assert summary == {"updated": 1, "skipped": 0, "failed": 0, "total": 1}
    db.expire_all()
    assert cota.entry_percentage == pytest.approx(15.0)
    assert cota.monthly_rate == pytest.approx(rate)
