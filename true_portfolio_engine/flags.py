"""
Trade data-quality flags over recalculated journal records.

The metrics engine degrades bad input to 0 instead of raising
(exits beyond the entry quantity are clamped, undated trades get no
portfolio size). These flags make those silent degradations visible to the
journal UI without changing any computed figure.

Flags are structured dicts with type, severity, human-readable message,
and the underlying data values so consumers can reason about them.
"""

from typing import Any, Dict, Iterable, List

from true_portfolio_engine.constants import HEAT_STATUSES
from true_portfolio_engine.data_objects import Trade


_SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}


def generate_trade_flags(trades: Iterable[Trade]) -> List[Dict[str, Any]]:
    """
    Generate ordered data-quality flags for a set of (recalculated) trades.

    Severity levels (returned in this order):
    - "warning": Input the engine had to clamp or ignore
    - "info": Incomplete records that zero out a metric

    Args:
        trades: Trades, ideally the output of ``recalculate`` so derived
                position status is current.

    Returns:
        List of structured flag dicts, ordered by severity.
    """
    flags: List[Dict[str, Any]] = []

    for trade in trades:
        label = trade.trade_no or trade.id
        entry_qty = trade.total_entry_qty
        exit_qty = sum(lot.qty for lot in trade.valid_exit_lots)

        if exit_qty > entry_qty:
            flags.append(
                {
                    "type": "exit_exceeds_entry",
                    "severity": "warning",
                    "message": (
                        f"Trade {label}: exited {exit_qty:g} but only {entry_qty:g} entered; "
                        f"{exit_qty - entry_qty:g} excess ignored"
                    ),
                    "trade_id": trade.id,
                    "entry_qty": entry_qty,
                    "exit_qty": exit_qty,
                }
            )

        if trade.trade_date is None:
            flags.append(
                {
                    "type": "missing_trade_date",
                    "severity": "warning",
                    "message": f"Trade {label}: no usable trade date; portfolio size and impact are 0",
                    "trade_id": trade.id,
                    "date": trade.date,
                }
            )

        if trade.metrics.position_status in HEAT_STATUSES:
            if trade.stop_loss <= 0 and trade.trailing_stop <= 0:
                flags.append(
                    {
                        "type": "missing_stop",
                        "severity": "info",
                        "message": f"Trade {label}: open position without a stop; open heat is 0",
                        "trade_id": trade.id,
                    }
                )
            if trade.cmp <= 0:
                flags.append(
                    {
                        "type": "missing_cmp",
                        "severity": "info",
                        "message": f"Trade {label}: open position without a current price; stock move is 0",
                        "trade_id": trade.id,
                    }
                )

    flags.sort(key=lambda f: _SEVERITY_ORDER.get(f["severity"], 99))
    return flags
