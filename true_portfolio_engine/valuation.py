"""Monthly portfolio valuation ("true portfolio size").

Each calendar month's capital is derived from the previous month's final
capital, the month's deposits/withdrawals and the month's realized trading
P&L:

    starting  = override(month) | yearly capital (Jan) | final(prev month)
    revised   = starting + net capital change(month)
    final     = revised + realized P&L(month)

The chain never crosses a year boundary (January always restarts from the
yearly capital unless overridden), so a month is resolved by folding forward
from the nearest anchor (memoized month, override, or January) instead of
recursing backwards.

Called by:
- ``recalculation.recalculate`` (one valuator per pass).
- ``reports`` for the bulk monthly series and XIRR ranges.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from true_portfolio_engine import config
from true_portfolio_engine._logging import log_operation
from true_portfolio_engine.capital_ledger import CapitalLedger
from true_portfolio_engine.constants import MONTH_INDEX, MONTHS, normalize_month
from true_portfolio_engine.data_objects import MonthlyPortfolioSnapshot, Trade


logger = logging.getLogger(__name__)

MonthKey = Tuple[str, int]


def month_key(when: date) -> MonthKey:
    return MONTHS[when.month - 1], when.year


def pl_attribution_date(trade: Trade) -> Optional[date]:
    """Date whose month receives this trade's realized P&L."""
    if config.PL_ATTRIBUTION == "trade_date":
        return trade.trade_date
    return trade.close_date


def realized_pl_by_month(
    trades: Iterable[Trade],
    pl_lookup: Optional[Callable[[Trade], float]] = None,
) -> Dict[MonthKey, float]:
    """
    Sum realized P&L per attribution month.

    Args:
        trades: Trade records.
        pl_lookup: Realized P&L of one trade; defaults to the already
            computed ``trade.metrics.realized_pl``.

    Returns:
        {(short month, year): realized P&L}. Trades without a usable date
        are left out.
    """
    lookup = pl_lookup or (lambda t: t.metrics.realized_pl)
    totals: Dict[MonthKey, float] = {}
    for trade in trades:
        when = pl_attribution_date(trade)
        if when is None:
            continue
        pl = lookup(trade)
        if not pl:
            continue
        key = month_key(when)
        totals[key] = totals.get(key, 0.0) + pl
    return totals


class MonthlyPortfolioValuator:
    """
    Per-pass monthly capital calculator.

    The memo lives as long as the valuator; build a new valuator whenever the
    ledger or the trade P&L changes.

    Example:
        valuator = MonthlyPortfolioValuator(ledger, pl_by_month={("Jan", 2024): 2500.0})
        valuator.valuate("Mar", 2024).final_capital
    """

    def __init__(self, ledger: CapitalLedger, pl_by_month: Optional[Dict[MonthKey, float]] = None):
        self.ledger = ledger
        self._pl_by_month = dict(pl_by_month or {})
        self._changes_by_month = ledger.net_capital_changes_by_month()
        self._memo: Dict[MonthKey, MonthlyPortfolioSnapshot] = {}

    @classmethod
    def from_trades(cls, ledger: CapitalLedger, trades: Iterable[Trade]) -> "MonthlyPortfolioValuator":
        """Valuator whose monthly P&L comes from already-recalculated trades."""
        return cls(ledger, realized_pl_by_month(trades))

    def valuate(self, month, year: int) -> MonthlyPortfolioSnapshot:
        """
        Capital snapshot for (month, year).

        Raises:
            InvalidMonthError: If ``month`` is not a calendar month
        """
        month = normalize_month(month)
        year = int(year)
        key = (month, year)
        if key in self._memo:
            return self._memo[key]

        target = MONTH_INDEX[month]
        anchor = target
        while anchor > 0:
            anchor_key = (MONTHS[anchor], year)
            if anchor_key in self._memo or self.ledger.get_monthly_override(*anchor_key) is not None:
                break
            anchor -= 1

        carried: Optional[float] = None
        if (MONTHS[anchor], year) in self._memo:
            carried = self._memo[(MONTHS[anchor], year)].final_capital
            anchor += 1

        for idx in range(anchor, target + 1):
            snapshot = self._build_snapshot(MONTHS[idx], year, carried)
            self._memo[(MONTHS[idx], year)] = snapshot
            carried = snapshot.final_capital

        return self._memo[key]

    def _build_snapshot(self, month: str, year: int, carried: Optional[float]) -> MonthlyPortfolioSnapshot:
        override = self.ledger.get_monthly_override(month, year)
        if override is not None:
            starting = override
        elif month == MONTHS[0]:
            starting = self.ledger.get_yearly_starting_capital(year)
        else:
            starting = carried or 0.0

        changes = self._changes_by_month.get((month, year), 0.0)
        revised = starting + changes
        pl = self._pl_by_month.get((month, year), 0.0)

        return MonthlyPortfolioSnapshot(
            month=month,
            year=year,
            starting_capital=starting,
            capital_changes=changes,
            revised_starting_capital=revised,
            pl=pl,
            final_capital=revised + pl,
        )

    def portfolio_size(self, month, year: int) -> float:
        """True portfolio size for the month: its final capital."""
        return self.valuate(month, year).final_capital

    def portfolio_size_on(self, when: Optional[date]) -> float:
        """Portfolio size for the month containing ``when``; 0 for no date."""
        if when is None:
            return 0.0
        return self.portfolio_size(*month_key(when))

    def latest_portfolio_size(self, as_of: Optional[date] = None) -> float:
        return self.portfolio_size_on(as_of or date.today())


@log_operation("monthly_snapshots")
def get_all_monthly_snapshots(
    ledger: CapitalLedger,
    trades: Optional[Iterable[Trade]] = None,
    valuator: Optional[MonthlyPortfolioValuator] = None,
) -> List[MonthlyPortfolioSnapshot]:
    """
    Jan..Dec snapshots for every year that has capital, capital changes or trades.

    ``trades`` should be the output of ``recalculate`` so their realized P&L
    is populated. One valuator (one memo) is shared across all months.
    """
    trades = list(trades or [])
    valuator = valuator or MonthlyPortfolioValuator.from_trades(ledger, trades)

    years = set(ledger.years_with_data())
    for trade in trades:
        for when in (trade.trade_date, pl_attribution_date(trade)):
            if when is not None:
                years.add(when.year)

    snapshots = [valuator.valuate(month, year) for year in sorted(years) for month in MONTHS]
    logger.debug("Built %d monthly snapshots across %d years", len(snapshots), len(years))
    return snapshots
