"""Portfolio-level reports over recalculated trades.

Called by:
- Journal dashboards that need the monthly capital table, total open heat
  or an annualized return for an arbitrary month range.

Inputs are always the output of ``recalculate``: these functions read the
derived trade fields, they never compute per-trade metrics themselves.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

import pandas as pd

from true_portfolio_engine._logging import log_operation
from true_portfolio_engine.capital_ledger import CapitalLedger
from true_portfolio_engine.constants import month_number, normalize_month
from true_portfolio_engine.data_objects import Trade
from true_portfolio_engine.flags import generate_trade_flags
from true_portfolio_engine.results import MonthlySnapshotsResult, PortfolioSummaryResult
from true_portfolio_engine.trade_metrics import calc_open_heat
from true_portfolio_engine.valuation import (
    MonthlyPortfolioValuator,
    get_all_monthly_snapshots,
    month_key,
)
from true_portfolio_engine.xirr import calc_xirr


logger = logging.getLogger(__name__)


def _month_start(month, year: int) -> date:
    return date(int(year), month_number(normalize_month(month)), 1)


def _month_end(month, year: int) -> date:
    return (pd.Timestamp(_month_start(month, year)) + pd.offsets.MonthEnd(0)).date()


def build_monthly_snapshots(ledger: CapitalLedger, trades: Iterable[Trade]) -> MonthlySnapshotsResult:
    return MonthlySnapshotsResult(snapshots=get_all_monthly_snapshots(ledger, trades))


def total_open_heat(
    trades: Iterable[Trade],
    valuator: MonthlyPortfolioValuator,
) -> float:
    """Sum of open heat across open/partial trades, each at its own month's size."""
    return calc_open_heat(trades, lambda t: valuator.portfolio_size_on(t.trade_date))


def portfolio_xirr(
    ledger: CapitalLedger,
    trades: Iterable[Trade],
    start_month,
    start_year: int,
    end_month,
    end_year: int,
    valuator: Optional[MonthlyPortfolioValuator] = None,
) -> float:
    """
    Annualized return (percent) from the start of one month to the end of another.

    The start mark is the start month's starting capital (before that
    month's deposits/withdrawals) on its first day; the end mark is the end
    month's final capital on its last day. Every capital change dated within
    the range is an interim flow.

    Raises:
        InvalidMonthError: If either month token is invalid
    """
    valuator = valuator or MonthlyPortfolioValuator.from_trades(ledger, trades)
    start_date = _month_start(start_month, start_year)
    end_date = _month_end(end_month, end_year)
    if end_date <= start_date:
        return 0.0

    start_capital = valuator.valuate(start_month, start_year).starting_capital
    end_capital = valuator.valuate(end_month, end_year).final_capital
    interim = ledger.capital_changes_between(start_date - timedelta(days=1), end_date)
    return calc_xirr(start_date, start_capital, end_date, end_capital, interim)


@log_operation("portfolio_summary")
def build_portfolio_summary(
    ledger: CapitalLedger,
    trades: Iterable[Trade],
    as_of: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> PortfolioSummaryResult:
    """
    Aggregate dashboard figures for recalculated trades.

    Args:
        ledger: Capital ledger used for the recalculation.
        trades: Output of ``recalculate``.
        as_of: Month for the latest portfolio size; today when omitted.
        start / end: XIRR range (any date inside the first/last month).
            Defaults to the first January with data through the ``as_of`` month.
    """
    trades = list(trades)
    as_of = as_of or date.today()
    valuator = MonthlyPortfolioValuator.from_trades(ledger, trades)
    snapshots = get_all_monthly_snapshots(ledger, trades, valuator=valuator)

    if start is None and snapshots:
        start = date(snapshots[0].year, 1, 1)
    end = end or as_of

    xirr_pct = 0.0
    if start is not None:
        xirr_pct = portfolio_xirr(ledger, trades, *month_key(start), *month_key(end), valuator=valuator)

    summary = PortfolioSummaryResult.from_summary(
        as_of=as_of,
        latest_portfolio_size=valuator.latest_portfolio_size(as_of),
        open_heat=total_open_heat(trades, valuator),
        realized_pl=sum(t.metrics.realized_pl for t in trades),
        unrealized_pl=sum(t.metrics.unrealized_pl for t in trades),
        cumm_pf=trades[-1].metrics.cumm_pf if trades else 0.0,
        xirr=xirr_pct,
        xirr_range={"start": start, "end": end},
        trade_count=len(trades),
        flags=generate_trade_flags(trades),
    )
    logger.debug("Portfolio summary built for %d trades", len(trades))
    return summary
