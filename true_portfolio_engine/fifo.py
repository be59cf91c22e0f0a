"""FIFO lot matching for realized P&L.

Entry lots are consumed strictly in the order given (oldest fill first, never
re-sorted by price). Each exit lot is matched against the front of the
remaining entry queue; exit quantity left over once the queue is empty is
reported as unmatched and contributes nothing.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List

from true_portfolio_engine.constants import SIDE_SELL
from true_portfolio_engine.data_objects import Lot


@dataclass
class LotMatch:
    entry_price: float
    exit_price: float
    qty: float
    pl: float


@dataclass
class FIFOMatchResult:
    realized_pl: float = 0.0
    matched_qty: float = 0.0
    unmatched_exit_qty: float = 0.0
    matches: List[LotMatch] = field(default_factory=list)


def match_fifo_lots(entry_lots: Iterable[Lot], exit_lots: Iterable[Lot], side: str) -> FIFOMatchResult:
    """Match exits against entries first-in-first-out and itemize each fill pair.

    Args:
        entry_lots: Entry fills in fill order; only ``price``/``qty`` are read.
        exit_lots: Exit fills in fill order.
        side: "Buy" (profit when exit > entry) or "Sell" (profit when exit < entry).

    Returns:
        FIFOMatchResult with total realized P&L, matched and unmatched quantity.
    """
    queue = deque([lot.price, lot.qty] for lot in entry_lots if lot.qty > 0)
    result = FIFOMatchResult()
    direction = -1.0 if side == SIDE_SELL else 1.0

    for exit_lot in exit_lots:
        remaining = exit_lot.qty
        while remaining > 0 and queue:
            front = queue[0]
            qty = min(front[1], remaining)
            pl = direction * qty * (exit_lot.price - front[0])
            result.matches.append(LotMatch(entry_price=front[0], exit_price=exit_lot.price, qty=qty, pl=pl))
            result.realized_pl += pl
            result.matched_qty += qty
            front[1] -= qty
            remaining -= qty
            if front[1] <= 0:
                queue.popleft()
        if remaining > 0:
            result.unmatched_exit_qty += remaining

    return result


def match_fifo(entry_lots: Iterable[Lot], exit_lots: Iterable[Lot], side: str) -> float:
    """Realized P&L of ``exit_lots`` against ``entry_lots`` under FIFO."""
    return match_fifo_lots(entry_lots, exit_lots, side).realized_pl
