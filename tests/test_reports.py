from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from conftest import AS_OF, make_trade
from true_portfolio_engine.data_objects import Lot
from true_portfolio_engine.flags import generate_trade_flags
from true_portfolio_engine.recalculation import recalculate
from true_portfolio_engine.reports import (
    build_monthly_snapshots,
    build_portfolio_summary,
    portfolio_xirr,
    total_open_heat,
)
from true_portfolio_engine.valuation import MonthlyPortfolioValuator


@pytest.fixture
def recalculated(ledger, sample_trades):
    return recalculate(ledger, sample_trades, as_of=AS_OF)


def test_portfolio_xirr_over_calendar_year(ledger):
    trade = make_trade(
        date="2024-06-03", entry=100.0, initial_qty=100.0,
        exits=[Lot(200.0, 100.0, "2024-12-15")],
    )
    trades = recalculate(ledger, [trade], as_of=AS_OF)

    pct = portfolio_xirr(ledger, trades, "Jan", 2024, "Dec", 2024)

    assert pct == pytest.approx(10.0, abs=1e-4)


def test_portfolio_xirr_empty_range_is_zero(ledger):
    assert portfolio_xirr(ledger, [], "Mar", 2024, "Feb", 2024) == 0.0


def test_portfolio_xirr_flat_capital_is_zero(ledger):
    assert portfolio_xirr(ledger, [], "January", 2024, "December", 2024) == pytest.approx(0.0, abs=1e-6)


def test_total_open_heat_uses_each_trade_month(ledger, recalculated):
    valuator = MonthlyPortfolioValuator.from_trades(ledger, recalculated)

    heat = total_open_heat(recalculated, valuator)

    # partial t2: (105 - 90) * 5, open t3: (50 - 45) * 200; both months at 101,250
    assert heat == pytest.approx((75.0 + 1000.0) / 101250.0 * 100)


def test_monthly_snapshots_dataframe(ledger, recalculated):
    frame = build_monthly_snapshots(ledger, recalculated).to_dataframe()

    assert len(frame) == 12
    assert frame.index.name == "period"
    assert frame.index[0] == pd.Timestamp("2024-01-01")
    assert frame.loc[pd.Timestamp("2024-01-01"), "pl"] == pytest.approx(1000.0)
    assert frame["final_capital"].iloc[-1] == pytest.approx(101250.0)


def test_monthly_snapshots_api_response(ledger, recalculated):
    payload = build_monthly_snapshots(ledger, recalculated).to_api_response()

    assert [row["month"] for row in payload["snapshots"]][:3] == ["Jan", "Feb", "Mar"]
    assert payload["snapshots"][1]["finalCapital"] == pytest.approx(101250.0)


def test_portfolio_summary(ledger, recalculated):
    summary = build_portfolio_summary(ledger, recalculated, as_of=AS_OF)
    payload = summary.to_api_response()

    assert payload["latest_portfolio_size"] == pytest.approx(101250.0)
    assert payload["realized_pl"] == pytest.approx(1250.0)
    assert payload["unrealized_pl"] == pytest.approx(1100.0)
    assert payload["trade_count"] == 3
    assert payload["cumm_pf"] == pytest.approx(recalculated[-1].metrics.cumm_pf)
    assert payload["xirr_range"] == {"start": "2024-01-01", "end": "2024-12-31"}
    assert summary.xirr == pytest.approx(1.25, abs=1e-4)
    assert summary.open_heat == pytest.approx((75.0 + 1000.0) / 101250.0 * 100)
    assert payload["flags"] == []


def test_summary_without_trades_or_capital():
    from true_portfolio_engine.capital_ledger import CapitalLedger

    payload = build_portfolio_summary(CapitalLedger(), [], as_of=date(2024, 5, 1)).to_api_response()

    assert payload["trade_count"] == 0
    assert payload["xirr"] == 0.0
    assert payload["latest_portfolio_size"] == 0.0


def test_flags_ordered_by_severity(ledger):
    trades = recalculate(
        ledger,
        [
            make_trade(id="open", trade_no="1", stop_loss=0.0, cmp=0.0),
            make_trade(id="over", trade_no="2", exits=[Lot(110.0, 12.0, "2024-01-05")]),
            make_trade(id="nodate", trade_no="3", date=None, cmp=100.0),
        ],
        as_of=AS_OF,
    )

    flags = generate_trade_flags(trades)

    assert [f["severity"] for f in flags] == ["warning", "warning", "info", "info"]
    assert {f["type"] for f in flags[:2]} == {"exit_exceeds_entry", "missing_trade_date"}
    assert {f["type"] for f in flags[2:]} == {"missing_stop", "missing_cmp"}
    assert flags[0]["trade_id"] == "over"
