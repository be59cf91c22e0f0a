"""Full recalculation of every trade's derived fields.

Called by:
- The journal's persistence/UI layer after any change to a trade, a capital
  change, a yearly capital or a monthly override.

Primary flow:
1. Sort trades by trade date (undated last), ties by trade number.
2. FIFO realized P&L for every trade from its raw lots. Realized P&L does not
   depend on portfolio size, so the full month -> P&L map is known up front.
3. One valuator (one memo) for the pass supplies each trade's month
   portfolio size.
4. Per trade, in order: derived metrics, then the running cumulative
   portfolio impact.

The output depends only on the raw inputs (and ``as_of``); derived fields
already present on the input trades are ignored, so re-running on its own
output reproduces it exactly.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from true_portfolio_engine import config
from true_portfolio_engine._logging import log_operation, log_portfolio_operation, log_timing
from true_portfolio_engine.capital_ledger import CapitalLedger
from true_portfolio_engine.data_objects import Trade
from true_portfolio_engine.fifo import FIFOMatchResult, match_fifo_lots
from true_portfolio_engine.trade_metrics import compute_trade_metrics
from true_portfolio_engine.valuation import MonthlyPortfolioValuator, realized_pl_by_month


logger = logging.getLogger(__name__)


def chronological_sort_key(trade: Trade) -> Tuple[int, date, str]:
    when = trade.trade_date
    return (0 if when is not None else 1, when or date.min, trade.trade_no or "")


def sort_trades(trades: Iterable[Trade]) -> List[Trade]:
    """Trades in recalculation order: by date ascending, ties by trade number."""
    return sorted(trades, key=chronological_sort_key)


def _match_trade(trade: Trade) -> FIFOMatchResult:
    return match_fifo_lots(trade.valid_entry_lots, trade.valid_exit_lots, trade.side)


@log_operation("recalculate")
@log_timing(lambda: config.SLOW_RECALCULATION_SECONDS)
def recalculate(
    ledger: CapitalLedger,
    trades: Iterable[Trade],
    as_of: Optional[date] = None,
) -> List[Trade]:
    """
    Recompute the derived block of every trade.

    Args:
        ledger: Capital ledger snapshot for this pass.
        trades: Trade records (raw fields are read, derived ones ignored).
        as_of: Reference date for open quantity in holding days; today when
            omitted. Pass a fixed date for reproducible output.

    Returns:
        New Trade objects in chronological order with metrics populated and
        names uppercased. Inputs are not modified.

    Raises:
        InvalidMonthError: Propagated from corrupt override data.
    """
    as_of = as_of or date.today()
    ordered = sort_trades(trades)

    fifo_results: Dict[int, FIFOMatchResult] = {}
    for idx, trade in enumerate(ordered):
        result = _match_trade(trade)
        fifo_results[idx] = result
        if result.unmatched_exit_qty > 0:
            logger.warning(
                "Trade %s (%s): exit quantity exceeds entry quantity by %s; excess ignored",
                trade.trade_no or trade.id,
                trade.name,
                result.unmatched_exit_qty,
            )

    realized = {id(trade): fifo_results[idx].realized_pl for idx, trade in enumerate(ordered)}
    valuator = MonthlyPortfolioValuator(
        ledger, realized_pl_by_month(ordered, pl_lookup=lambda t: realized[id(t)])
    )

    running_cumm_pf = 0.0
    recalculated: List[Trade] = []
    for idx, trade in enumerate(ordered):
        portfolio_size = valuator.portfolio_size_on(trade.trade_date)
        metrics = compute_trade_metrics(
            trade,
            portfolio_size,
            as_of=as_of,
            realized_pl=fifo_results[idx].realized_pl,
        )
        running_cumm_pf += metrics.pf_impact
        metrics.cumm_pf = running_cumm_pf
        recalculated.append(trade.with_metrics(metrics, name=(trade.name or "").upper()))

    log_portfolio_operation(
        "recalculate",
        {
            "trades": len(recalculated),
            "realized_pl": round(sum(r.realized_pl for r in fifo_results.values()), 2),
            "cumm_pf": round(running_cumm_pf, 4),
        },
    )
    return recalculated
