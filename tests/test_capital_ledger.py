from __future__ import annotations

import pytest

from true_portfolio_engine.capital_ledger import CapitalLedger
from true_portfolio_engine.data_objects import CapitalChangeEvent
from true_portfolio_engine.exceptions import InvalidMonthError


def test_missing_yearly_capital_is_zero():
    assert CapitalLedger().get_yearly_starting_capital(2024) == 0.0


def test_yearly_capital_last_write_wins(ledger):
    ledger.set_yearly_starting_capital(2024, 250000)

    assert ledger.get_yearly_starting_capital(2024) == pytest.approx(250000.0)
    assert len(ledger.yearly_starting_capitals) == 1


def test_override_set_and_remove_normalizes_month(ledger):
    item = ledger.set_monthly_override("March", 2024, 75000)

    assert item.id == "Mar-2024"
    assert ledger.get_monthly_override("Mar", 2024) == pytest.approx(75000.0)
    assert ledger.remove_monthly_override("mar", 2024) is True
    assert ledger.remove_monthly_override("Mar", 2024) is False
    assert ledger.get_monthly_override("Mar", 2024) is None


def test_override_rejects_invalid_month(ledger):
    with pytest.raises(InvalidMonthError):
        ledger.set_monthly_override("Smarch", 2024, 1)


def test_net_capital_change_by_calendar_month(ledger):
    ledger.add_capital_change("2024-03-01", 5000, "deposit")
    ledger.add_capital_change("2024-03-31", 1500, "withdrawal")
    ledger.add_capital_change("2024-04-01", 700, "deposit")

    assert ledger.net_capital_change("Mar", 2024) == pytest.approx(3500.0)
    assert ledger.net_capital_change("Apr", 2024) == pytest.approx(700.0)
    assert ledger.net_capital_change("May", 2024) == 0.0


def test_negative_amount_stored_as_magnitude(ledger):
    change = ledger.add_capital_change("2024-05-10", -800, "withdrawal")

    assert change.amount == pytest.approx(800.0)
    assert ledger.net_capital_change("May", 2024) == pytest.approx(-800.0)


def test_unknown_change_kind_rejected(ledger):
    with pytest.raises(ValueError):
        ledger.add_capital_change("2024-05-10", 100, "dividend")


def test_undated_change_ignored_in_monthly_totals(ledger):
    ledger.add_capital_change("sometime", 100, "deposit")

    assert ledger.net_capital_changes_by_month() == {}
    assert ledger.years_with_data() == {2024}


def test_update_and_delete_capital_change(ledger):
    change = ledger.add_capital_change("2024-06-01", 1000, "deposit")
    assert change.id.startswith("capital_")

    edited = CapitalChangeEvent(id=change.id, date="2024-07-01", amount=2000, kind="deposit")
    assert ledger.update_capital_change(edited) is True
    assert ledger.net_capital_change("Jun", 2024) == 0.0
    assert ledger.net_capital_change("Jul", 2024) == pytest.approx(2000.0)

    assert ledger.delete_capital_change(change.id) is True
    assert ledger.delete_capital_change(change.id) is False
    assert ledger.capital_changes == []


def test_update_unknown_change_returns_false(ledger):
    ghost = CapitalChangeEvent(id="capital_missing", date="2024-01-01", amount=1)

    assert ledger.update_capital_change(ghost) is False


def test_capital_changes_between_is_start_exclusive_end_inclusive(ledger):
    ledger.add_capital_change("2024-01-31", 1, "deposit")
    ledger.add_capital_change("2024-03-01", 3, "deposit")
    ledger.add_capital_change("2024-02-15", 2, "deposit")

    selected = ledger.capital_changes_between("2024-01-31", "2024-03-01")

    assert [c.amount for c in selected] == [2.0, 3.0]


def test_persistence_record_round_trip(ledger):
    ledger.set_monthly_override("Jun", 2024, 50000)
    ledger.add_capital_change("2024-03-05", 5000, "deposit", "bonus")

    record = ledger.to_dict()
    restored = CapitalLedger.from_dict(record)

    assert record["monthlyStartingCapitalOverrides"][0]["id"] == "Jun-2024"
    assert record["capitalChanges"][0]["type"] == "deposit"
    assert restored.get_yearly_starting_capital(2024) == pytest.approx(100000.0)
    assert restored.get_monthly_override("Jun", 2024) == pytest.approx(50000.0)
    assert restored.net_capital_change("Mar", 2024) == pytest.approx(5000.0)
    assert restored.to_dict() == record
