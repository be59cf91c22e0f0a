"""Public API for true_portfolio_engine."""

from true_portfolio_engine.capital_ledger import CapitalLedger
from true_portfolio_engine.data_objects import (
    CapitalChangeEvent,
    Lot,
    MonthlyPortfolioSnapshot,
    MonthlyStartingCapitalOverride,
    Trade,
    TradeMetrics,
    YearlyStartingCapital,
)
from true_portfolio_engine.exceptions import InvalidMonthError
from true_portfolio_engine.fifo import match_fifo, match_fifo_lots
from true_portfolio_engine.flags import generate_trade_flags
from true_portfolio_engine.recalculation import recalculate
from true_portfolio_engine.reports import build_portfolio_summary, portfolio_xirr, total_open_heat
from true_portfolio_engine.trade_metrics import calc_open_heat, compute_trade_metrics
from true_portfolio_engine.valuation import MonthlyPortfolioValuator, get_all_monthly_snapshots
from true_portfolio_engine.xirr import calc_xirr, xirr

__all__ = [
    "CapitalLedger",
    "CapitalChangeEvent",
    "Lot",
    "MonthlyPortfolioSnapshot",
    "MonthlyStartingCapitalOverride",
    "Trade",
    "TradeMetrics",
    "YearlyStartingCapital",
    "InvalidMonthError",
    "match_fifo",
    "match_fifo_lots",
    "generate_trade_flags",
    "recalculate",
    "build_portfolio_summary",
    "portfolio_xirr",
    "total_open_heat",
    "calc_open_heat",
    "compute_trade_metrics",
    "MonthlyPortfolioValuator",
    "get_all_monthly_snapshots",
    "calc_xirr",
    "xirr",
]
