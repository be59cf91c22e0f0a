"""Per-trade derived metrics.

Pure functions over a trade's valid lots (price > 0 and qty > 0) and its
price levels. Missing or zero inputs degrade the affected metric to 0 so
that a half-filled journal row never breaks a recalculation pass.

``compute_trade_metrics`` assembles every field of ``TradeMetrics`` except
``cumm_pf``, which depends on trade order and is owned by the orchestrator.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from true_portfolio_engine import config
from true_portfolio_engine._vendor import _to_date
from true_portfolio_engine.constants import (
    HEAT_STATUSES,
    SIDE_BUY,
    SIDE_SELL,
    STATUS_CLOSED,
    STATUS_OPEN,
    STATUS_PARTIAL,
)
from true_portfolio_engine.data_objects import Lot, Trade, TradeMetrics
from true_portfolio_engine.fifo import match_fifo


logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Quantities and averages
# ----------------------------------------------------------------------

def _weighted_price(lots: Sequence[Lot]) -> float:
    total_qty = sum(lot.qty for lot in lots)
    if not total_qty:
        return 0.0
    return sum(lot.price * lot.qty for lot in lots) / total_qty


def calc_avg_entry(entry_lots: Sequence[Lot]) -> float:
    """Quantity-weighted mean entry price; 0 with no lots."""
    return _weighted_price(entry_lots)


def calc_avg_exit_price(exit_lots: Sequence[Lot]) -> float:
    return _weighted_price(exit_lots)


def calc_position_size(avg_entry: float, total_qty: float) -> float:
    return avg_entry * total_qty


def calc_allocation(position_size: float, portfolio_size: float) -> float:
    """Position size as a percentage of the portfolio."""
    return position_size / portfolio_size * 100 if portfolio_size else 0.0


def calc_sl_percent(stop_loss: float, entry: float) -> float:
    """Distance from entry to stop-loss, in percent of entry."""
    if not entry or not stop_loss:
        return 0.0
    return abs((entry - stop_loss) / entry * 100)


def calc_exited_qty(exit_lots: Sequence[Lot]) -> float:
    return sum(lot.qty for lot in exit_lots)


def calc_open_qty(total_entry_qty: float, exited_qty: float) -> float:
    """Quantity still held. Exits beyond the entry quantity clamp to 0."""
    return max(0.0, total_entry_qty - exited_qty)


def derive_position_status(open_qty: float, exited_qty: float) -> str:
    if exited_qty <= 0:
        return STATUS_OPEN
    if open_qty <= 0:
        return STATUS_CLOSED
    return STATUS_PARTIAL


def calc_realised_amount(exited_qty: float, avg_exit_price: float) -> float:
    return exited_qty * avg_exit_price


def calc_pf_impact(realized_pl: float, portfolio_size: float) -> float:
    """Realized P&L as a percentage of the trade-month portfolio size."""
    return realized_pl / portfolio_size * 100 if portfolio_size else 0.0


def calc_unrealized_pl(avg_entry: float, cmp: float, open_qty: float, side: str) -> float:
    """Mark-to-market P&L of the open quantity at ``cmp``."""
    if not open_qty or not avg_entry or not cmp:
        return 0.0
    if side == SIDE_SELL:
        return (avg_entry - cmp) * open_qty
    return (cmp - avg_entry) * open_qty


# ----------------------------------------------------------------------
# Moves and reward:risk
# ----------------------------------------------------------------------

def calc_stock_move(
    avg_entry: float,
    avg_exit: float,
    cmp: float,
    open_qty: float,
    exited_qty: float,
    position_status: str,
    side: str = SIDE_BUY,
) -> float:
    """
    Percentage move of the position from its average entry.

    Open positions are marked at ``cmp``, closed ones at the average exit,
    and partial ones blend the realized and unrealized moves by quantity.
    Sell trades report the move with the sign flipped, so a favourable move
    is always positive.
    """
    if not avg_entry:
        return 0.0
    total_qty = open_qty + exited_qty
    if total_qty == 0:
        return 0.0

    if position_status == STATUS_OPEN:
        if not cmp:
            return 0.0
        move = (cmp - avg_entry) / avg_entry * 100
    elif position_status == STATUS_CLOSED:
        if not avg_exit:
            return 0.0
        move = (avg_exit - avg_entry) / avg_entry * 100
    elif position_status == STATUS_PARTIAL:
        if not cmp or not avg_exit:
            return 0.0
        realized_move = (avg_exit - avg_entry) / avg_entry * 100
        unrealized_move = (cmp - avg_entry) / avg_entry * 100
        move = (realized_move * exited_qty + unrealized_move * open_qty) / total_qty
    else:
        return 0.0

    return -move if side == SIDE_SELL else move


def _directional(side: str, exit_price: float, entry_price: float) -> float:
    return entry_price - exit_price if side == SIDE_SELL else exit_price - entry_price


def calc_reward_risk(
    target: float,
    entry: float,
    stop_loss: float,
    position_status: str,
    avg_exit: float = 0.0,
    open_qty: float = 0.0,
    exited_qty: float = 0.0,
    side: str = SIDE_BUY,
) -> float:
    """Single-entry reward:risk against the stop-loss (absolute ratio)."""
    if not entry or not stop_loss:
        return 0.0
    total_qty = open_qty + exited_qty
    if total_qty == 0:
        return 0.0
    risk = abs(entry - stop_loss)
    if risk == 0:
        return 0.0

    if position_status == STATUS_OPEN:
        reward = _directional(side, target, entry)
    elif position_status == STATUS_CLOSED:
        reward = _directional(side, avg_exit, entry)
    elif position_status == STATUS_PARTIAL:
        realized = _directional(side, avg_exit, entry)
        potential = _directional(side, target, entry)
        reward = (realized * exited_qty + potential * open_qty) / total_qty
    else:
        return 0.0
    return abs(reward / risk)


def calc_weighted_reward_risk(
    trade: Trade,
    avg_exit: float,
    open_qty: float,
    exited_qty: float,
    position_status: str,
) -> float:
    """
    Quantity-weighted reward:risk across the trade's entry lots.

    The initial lot is always measured against the stop-loss; pyramid lots
    against the trailing stop when one is set, otherwise the stop-loss. The
    reward side mirrors ``calc_stock_move``: open positions are marked at
    ``cmp`` (``target`` is ignored), closed ones at the average exit, and
    partial ones blend both by quantity.
    """
    lots = [(i == 0, lot) for i, lot in enumerate(trade.entry_lots) if lot.is_valid]
    total_qty = sum(lot.qty for _, lot in lots)
    if not total_qty:
        return 0.0

    potential_price = trade.cmp
    weighted = 0.0
    for is_initial, lot in lots:
        stop = trade.stop_loss if is_initial or trade.trailing_stop <= 0 else trade.trailing_stop
        risk = abs(lot.price - stop)

        if position_status == STATUS_OPEN:
            reward = _directional(trade.side, potential_price, lot.price) if potential_price else None
        elif position_status == STATUS_CLOSED:
            reward = _directional(trade.side, avg_exit, lot.price) if avg_exit else None
        elif position_status == STATUS_PARTIAL and potential_price and avg_exit:
            realized = _directional(trade.side, avg_exit, lot.price)
            potential = _directional(trade.side, potential_price, lot.price)
            reward = (realized * exited_qty + potential * open_qty) / total_qty
        else:
            reward = None

        ratio = abs(reward / risk) if reward is not None and risk != 0 else 0.0
        weighted += ratio * lot.qty

    return weighted / total_qty


def calc_individual_moves(
    entry_lots: Sequence[Lot],
    cmp: float,
    avg_exit: float,
    position_status: str,
    side: str = SIDE_BUY,
) -> List[Dict[str, Any]]:
    """Per-lot move breakdown (one row per valid entry lot)."""
    if position_status == STATUS_OPEN:
        compare_price = cmp
    elif position_status == STATUS_PARTIAL:
        compare_price = cmp or avg_exit
    else:
        compare_price = avg_exit

    rows = []
    for lot in entry_lots:
        if not lot.is_valid:
            continue
        move = 0.0
        if compare_price:
            move = (compare_price - lot.price) / lot.price * 100
            if side == SIDE_SELL:
                move = -move
        rows.append({"entry_price": lot.price, "qty": lot.qty, "move_percent": move})
    return rows


# ----------------------------------------------------------------------
# Holding period
# ----------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calc_holding_days(trade: Trade, as_of: Optional[date] = None) -> int:
    """
    Quantity-weighted average holding period in days.

    Every valid entry lot is a leg (pyramids without a date use the trade
    date). Dated exits, oldest first, close legs first-in-first-out and are
    split across legs when they exceed a leg's remaining quantity. Exits
    without a date close next, at the latest exit date (the trade date when
    no exit is dated). Quantity still open is held until ``as_of`` (today by
    default). Each segment counts at least ``HOLDING_DAYS_MIN`` days.

    Returns 0 when the trade date or any lot date cannot be parsed.
    """
    as_of = as_of or date.today()
    min_days = config.HOLDING_DAYS_MIN

    trade_date = _to_date(trade.date)
    if trade_date is None:
        if trade.date not in (None, ""):
            logger.warning("Trade %s: unparseable trade date %r; holding days set to 0", trade.id, trade.date)
        return 0

    legs: List[List[Any]] = []
    for lot in trade.valid_entry_lots:
        entry_date = _to_date(lot.date) if lot.date not in (None, "") else trade_date
        if entry_date is None:
            logger.warning("Trade %s: unparseable entry date %r; holding days set to 0", trade.id, lot.date)
            return 0
        legs.append([entry_date, lot.qty])

    exits = []
    undated_exit_qty = 0.0
    for lot in trade.valid_exit_lots:
        if lot.date in (None, ""):
            undated_exit_qty += lot.qty
            continue
        exit_date = _to_date(lot.date)
        if exit_date is None:
            logger.warning("Trade %s: unparseable exit date %r; holding days set to 0", trade.id, lot.date)
            return 0
        exits.append((exit_date, lot.qty))
    exits.sort(key=lambda item: item[0])
    if undated_exit_qty > 0:
        exits.append((exits[-1][0] if exits else trade_date, undated_exit_qty))

    segments = []
    leg_idx = 0
    for exit_date, exit_qty in exits:
        remaining = exit_qty
        while remaining > 0 and leg_idx < len(legs):
            leg = legs[leg_idx]
            used = min(leg[1], remaining)
            segments.append((leg[0], exit_date, used))
            leg[1] -= used
            remaining -= used
            if leg[1] <= 0:
                leg_idx += 1
    for entry_date, open_qty in legs[leg_idx:]:
        if open_qty > 0:
            segments.append((entry_date, as_of, open_qty))

    total_qty = sum(qty for _, _, qty in segments)
    if not total_qty:
        return 0
    total_days = sum(max(min_days, (end - start).days) * qty for start, end, qty in segments)
    return _round_half_up(total_days / total_qty)


# ----------------------------------------------------------------------
# Open heat
# ----------------------------------------------------------------------

def calc_trade_open_heat(trade: Trade, portfolio_size: float) -> float:
    """
    Capital at risk on one open/partial trade, in percent of ``portfolio_size``.

    Uses the trade's derived ``avg_entry`` and ``open_qty`` (recalculate
    first). The trailing stop wins over the stop-loss when set; a stop at or
    beyond the entry price means nothing is at risk.
    """
    if trade.metrics.position_status not in HEAT_STATUSES:
        return 0.0
    entry_price = trade.metrics.avg_entry or trade.entry
    stop = trade.trailing_stop if trade.trailing_stop > 0 else trade.stop_loss
    qty = trade.metrics.open_qty
    if not entry_price or not stop or not qty:
        return 0.0
    if stop >= entry_price:
        return 0.0
    risk = (entry_price - stop) * qty
    return max(0.0, risk) / portfolio_size * 100 if portfolio_size > 0 else 0.0


def calc_open_heat(trades: Iterable[Trade], portfolio_size_for: Callable[[Trade], float]) -> float:
    """Total open heat, each trade measured against its own month's portfolio size."""
    total = 0.0
    for trade in trades:
        if trade.metrics.position_status not in HEAT_STATUSES:
            continue
        total += calc_trade_open_heat(trade, portfolio_size_for(trade))
    return total


# ----------------------------------------------------------------------
# Assembly
# ----------------------------------------------------------------------

def compute_trade_metrics(
    trade: Trade,
    portfolio_size: float,
    as_of: Optional[date] = None,
    realized_pl: Optional[float] = None,
) -> TradeMetrics:
    """
    Every derived field of ``trade`` except ``cumm_pf``.

    Args:
        trade: Raw trade; its existing ``metrics`` block is ignored.
        portfolio_size: True portfolio size of the trade's month.
        as_of: Reference date for still-open quantity (today by default).
        realized_pl: Precomputed FIFO P&L, to avoid matching twice.
    """
    entry_lots = trade.valid_entry_lots
    exit_lots = trade.valid_exit_lots

    avg_entry = calc_avg_entry(entry_lots)
    total_qty = sum(lot.qty for lot in entry_lots)
    position_size = calc_position_size(avg_entry, total_qty)
    exited_qty = calc_exited_qty(exit_lots)
    open_qty = calc_open_qty(total_qty, exited_qty)
    avg_exit = calc_avg_exit_price(exit_lots)
    status = derive_position_status(open_qty, exited_qty)

    if realized_pl is None:
        realized_pl = match_fifo(entry_lots, exit_lots, trade.side) if exited_qty > 0 else 0.0

    metrics = TradeMetrics(
        avg_entry=avg_entry,
        position_size=position_size,
        allocation=calc_allocation(position_size, portfolio_size),
        sl_percent=calc_sl_percent(trade.stop_loss, trade.entry),
        open_qty=open_qty,
        exited_qty=exited_qty,
        avg_exit_price=avg_exit,
        position_status=status,
        stock_move=calc_stock_move(avg_entry, avg_exit, trade.cmp, open_qty, exited_qty, status, trade.side),
        reward_risk=calc_weighted_reward_risk(trade, avg_exit, open_qty, exited_qty, status),
        holding_days=calc_holding_days(trade, as_of),
        realised_amount=calc_realised_amount(exited_qty, avg_exit),
        realized_pl=realized_pl,
        unrealized_pl=calc_unrealized_pl(avg_entry, trade.cmp, open_qty, trade.side),
        pf_impact=calc_pf_impact(realized_pl, portfolio_size),
    )
    metrics.open_heat = calc_trade_open_heat(trade.with_metrics(metrics), portfolio_size)
    return metrics
