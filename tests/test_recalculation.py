from __future__ import annotations

import copy
import logging

import pytest

from conftest import AS_OF, make_trade
from true_portfolio_engine import config
from true_portfolio_engine.data_objects import Lot, TradeMetrics
from true_portfolio_engine.recalculation import recalculate, sort_trades


def test_sort_by_date_then_trade_number():
    trades = [
        make_trade(id="c", trade_no="3", date="2024-03-01"),
        make_trade(id="b", trade_no="2", date="2024-01-05"),
        make_trade(id="a", trade_no="10", date="2024-01-05"),
        make_trade(id="u", trade_no="0", date=None),
    ]

    # trade numbers compare as text
    assert [t.id for t in sort_trades(trades)] == ["a", "b", "c", "u"]


def test_recalculate_uses_trade_month_portfolio_size(ledger, sample_trades):
    result = {t.id: t for t in recalculate(ledger, sample_trades, as_of=AS_OF)}

    jan, feb = 101000.0, 101250.0
    assert result["t1"].metrics.realized_pl == pytest.approx(1000.0)
    assert result["t1"].metrics.pf_impact == pytest.approx(1000.0 / jan * 100)
    assert result["t2"].metrics.allocation == pytest.approx(2100.0 / feb * 100)
    assert result["t2"].metrics.pf_impact == pytest.approx(250.0 / feb * 100)
    assert result["t3"].metrics.allocation == pytest.approx(10000.0 / feb * 100)


def test_cumm_pf_is_running_sum_in_chronological_order(ledger, sample_trades):
    result = recalculate(ledger, sample_trades, as_of=AS_OF)

    assert [t.id for t in result] == ["t1", "t2", "t3"]
    running = 0.0
    for trade in result:
        running += trade.metrics.pf_impact
        assert trade.metrics.cumm_pf == pytest.approx(running)


def test_names_uppercased_and_status_derived(ledger, sample_trades):
    result = {t.id: t for t in recalculate(ledger, sample_trades, as_of=AS_OF)}

    assert result["t1"].name == "ALPHA"
    assert result["t1"].metrics.position_status == "Closed"
    assert result["t2"].metrics.position_status == "Partial"
    assert result["t3"].metrics.position_status == "Open"


def test_recalculate_is_idempotent(ledger, sample_trades):
    first = recalculate(ledger, sample_trades, as_of=AS_OF)
    second = recalculate(ledger, first, as_of=AS_OF)

    assert [t.to_dict() for t in second] == [t.to_dict() for t in first]


def test_stale_derived_fields_are_ignored(ledger):
    stale = make_trade(
        exits=[Lot(120.0, 10.0, "2024-01-20")],
        metrics=TradeMetrics(realized_pl=99999.0, cumm_pf=42.0, position_status="Open"),
    )

    (trade,) = recalculate(ledger, [stale], as_of=AS_OF)

    assert trade.metrics.realized_pl == pytest.approx(200.0)
    assert trade.metrics.position_status == "Closed"


def test_inputs_not_mutated(ledger, sample_trades):
    before = copy.deepcopy(sample_trades)

    recalculate(ledger, sample_trades, as_of=AS_OF)

    assert [t.to_dict() for t in sample_trades] == [t.to_dict() for t in before]


def test_undated_trade_sorted_last_with_zero_size(ledger, sample_trades):
    undated = make_trade(id="u", trade_no="0", date=None, exits=[Lot(110.0, 10.0)])

    result = recalculate(ledger, sample_trades + [undated], as_of=AS_OF)

    assert result[-1].id == "u"
    assert result[-1].metrics.realized_pl == pytest.approx(100.0)
    assert result[-1].metrics.allocation == 0.0
    assert result[-1].metrics.pf_impact == 0.0
    assert result[-1].metrics.holding_days == 0


def test_excess_exit_clamped_and_logged(ledger, caplog):
    trade = make_trade(exits=[Lot(110.0, 15.0, "2024-01-10")])

    with caplog.at_level(logging.WARNING, logger="true_portfolio_engine"):
        (result,) = recalculate(ledger, [trade], as_of=AS_OF)

    assert result.metrics.open_qty == 0.0
    assert result.metrics.position_status == "Closed"
    assert "exceeds entry quantity" in caplog.text


def test_exit_pl_lands_in_exit_month(ledger):
    jan = make_trade(id="a", trade_no="1", date="2024-01-10", exits=[Lot(200.0, 10.0, "2024-02-15")])
    feb = make_trade(id="b", trade_no="2", date="2024-02-01", entry=50.0, initial_qty=100.0, stop_loss=45.0)

    result = {t.id: t for t in recalculate(ledger, [feb, jan], as_of=AS_OF)}

    # Jan unaffected; Feb includes the 1000 realized by trade a
    assert result["a"].metrics.pf_impact == pytest.approx(1000.0 / 100000.0 * 100)
    assert result["b"].metrics.allocation == pytest.approx(5000.0 / 101000.0 * 100)


def test_slow_threshold_read_at_call_time(ledger, sample_trades, monkeypatch, caplog):
    monkeypatch.setattr(config, "SLOW_RECALCULATION_SECONDS", 1e-12)

    with caplog.at_level(logging.WARNING, logger="true_portfolio_engine"):
        recalculate(ledger, sample_trades, as_of=AS_OF)

    assert "slow_operation" in caplog.text


def test_no_slow_warning_under_threshold(ledger, sample_trades, monkeypatch, caplog):
    monkeypatch.setattr(config, "SLOW_RECALCULATION_SECONDS", 3600.0)

    with caplog.at_level(logging.WARNING, logger="true_portfolio_engine"):
        recalculate(ledger, sample_trades, as_of=AS_OF)

    assert "slow_operation" not in caplog.text
