"""
Core Data Objects Module

Closed record types for the capital ledger and the trade journal.

Classes:
- YearlyStartingCapital: Capital at the start of a calendar year
- MonthlyStartingCapitalOverride: Explicit starting capital for one month
- CapitalChangeEvent: A dated deposit or withdrawal
- Lot: One entry or exit fill (price, quantity, date)
- TradeMetrics: Derived per-trade fields, fully rewritten on every recalculation
- Trade: Raw trade record plus its derived TradeMetrics block
- MonthlyPortfolioSnapshot: Ephemeral per-month capital rollup

Persistence records use camelCase keys (``tradeNo``, ``buySell``, ``sl``,
``exit1Price`` ...). ``from_dict`` / ``to_dict`` translate between those
records and the snake_case dataclasses; the engine itself only ever touches
the dataclasses.

Usage: Inputs and outputs of ``recalculate`` and the valuator.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Union

from true_portfolio_engine._vendor import _to_date, _to_datetime, _to_float
from true_portfolio_engine.constants import (
    MAX_EXIT_LOTS,
    MAX_PYRAMID_LOTS,
    SIDE_BUY,
    SIDE_SELL,
    STATUS_OPEN,
    DEPOSIT,
    is_valid_capital_change_kind,
    is_valid_side,
    normalize_month,
)


logger = logging.getLogger(__name__)

DateLike = Union[str, dt.date, None]


def _iso(value: Any) -> Any:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


@dataclass
class YearlyStartingCapital:
    """Capital the portfolio starts a calendar year with."""

    year: int
    starting_capital: float
    updated_at: Optional[dt.datetime] = None

    def __post_init__(self):
        self.year = int(self.year)
        self.starting_capital = _to_float(self.starting_capital)
        self.updated_at = _to_datetime(self.updated_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "startingCapital": self.starting_capital,
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "YearlyStartingCapital":
        return cls(
            year=d["year"],
            starting_capital=d.get("startingCapital", 0.0),
            updated_at=d.get("updatedAt"),
        )


@dataclass
class MonthlyStartingCapitalOverride:
    """
    Explicit starting capital for one (month, year).

    When present it replaces the value the valuator would otherwise carry
    forward from the previous month (or the yearly capital for January).
    Full month names are normalized to short names on construction.

    Raises:
        InvalidMonthError: If ``month`` is not a calendar month
    """

    month: str
    year: int
    starting_capital: float
    updated_at: Optional[dt.datetime] = None

    def __post_init__(self):
        self.month = normalize_month(self.month)
        self.year = int(self.year)
        self.starting_capital = _to_float(self.starting_capital)
        self.updated_at = _to_datetime(self.updated_at)

    @property
    def id(self) -> str:
        return f"{self.month}-{self.year}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "month": self.month,
            "year": self.year,
            "startingCapital": self.starting_capital,
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MonthlyStartingCapitalOverride":
        return cls(
            month=d["month"],
            year=d["year"],
            starting_capital=d.get("startingCapital", 0.0),
            updated_at=d.get("updatedAt"),
        )


@dataclass
class CapitalChangeEvent:
    """
    A dated deposit or withdrawal.

    ``amount`` is stored as a positive number; ``kind`` carries the
    direction. ``signed_amount`` is what the ledger sums.

    Raises:
        ValueError: If ``kind`` is not deposit/withdrawal
    """

    id: str
    date: DateLike
    amount: float
    kind: str = DEPOSIT
    description: str = ""

    def __post_init__(self):
        if not is_valid_capital_change_kind(self.kind):
            raise ValueError(f"Unknown capital change kind: {self.kind!r}")
        self.amount = abs(_to_float(self.amount))
        parsed = _to_date(self.date)
        if parsed is None and self.date not in (None, ""):
            logger.warning("Capital change %s has unparseable date %r", self.id, self.date)
        self.date = parsed

    @property
    def signed_amount(self) -> float:
        return self.amount if self.kind == DEPOSIT else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": _iso(self.date),
            "amount": self.amount,
            "type": self.kind,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CapitalChangeEvent":
        return cls(
            id=str(d.get("id", "")),
            date=d.get("date"),
            amount=d.get("amount", 0.0),
            kind=d.get("type", d.get("kind", DEPOSIT)),
            description=d.get("description", "") or "",
        )


@dataclass
class Lot:
    """A single entry or exit fill. Only lots with price > 0 and qty > 0 count."""

    price: float = 0.0
    qty: float = 0.0
    date: DateLike = None

    def __post_init__(self):
        self.price = _to_float(self.price)
        self.qty = _to_float(self.qty)

    @property
    def is_valid(self) -> bool:
        return self.price > 0 and self.qty > 0


@dataclass
class TradeMetrics:
    """Derived trade fields. Never hand-edited; rewritten by ``recalculate``."""

    avg_entry: float = 0.0
    position_size: float = 0.0
    allocation: float = 0.0
    sl_percent: float = 0.0
    open_qty: float = 0.0
    exited_qty: float = 0.0
    avg_exit_price: float = 0.0
    position_status: str = STATUS_OPEN
    stock_move: float = 0.0
    reward_risk: float = 0.0
    holding_days: int = 0
    realised_amount: float = 0.0
    realized_pl: float = 0.0
    unrealized_pl: float = 0.0
    open_heat: float = 0.0
    pf_impact: float = 0.0
    cumm_pf: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {DERIVED_FIELD_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}


# snake_case attribute -> persistence key
DERIVED_FIELD_KEYS = {
    "avg_entry": "avgEntry",
    "position_size": "positionSize",
    "allocation": "allocation",
    "sl_percent": "slPercent",
    "open_qty": "openQty",
    "exited_qty": "exitedQty",
    "avg_exit_price": "avgExitPrice",
    "position_status": "positionStatus",
    "stock_move": "stockMove",
    "reward_risk": "rewardRisk",
    "holding_days": "holdingDays",
    "realised_amount": "realisedAmount",
    "realized_pl": "plRs",
    "unrealized_pl": "unrealizedPL",
    "open_heat": "openHeat",
    "pf_impact": "pfImpact",
    "cumm_pf": "cummPf",
}

_RAW_TRADE_KEYS = {
    "id", "tradeNo", "date", "name", "setup", "buySell", "entry", "initialQty",
    "sl", "tsl", "cmp", "target", "notes",
}
_RAW_TRADE_KEYS.update(
    f"pyramid{i}{suffix}" for i in range(1, MAX_PYRAMID_LOTS + 1) for suffix in ("Price", "Qty", "Date")
)
_RAW_TRADE_KEYS.update(
    f"exit{i}{suffix}" for i in range(1, MAX_EXIT_LOTS + 1) for suffix in ("Price", "Qty", "Date")
)


def _lots_from_record(d: Dict[str, Any], prefix: str, count: int) -> List[Lot]:
    lots = []
    for i in range(1, count + 1):
        price = d.get(f"{prefix}{i}Price")
        qty = d.get(f"{prefix}{i}Qty")
        when = d.get(f"{prefix}{i}Date")
        # Empty slots are written as 0/0/None by to_dict.
        if not _to_float(price) and not _to_float(qty) and when in (None, ""):
            continue
        lots.append(Lot(price=price, qty=qty, date=when or None))
    return lots


def _lots_to_record(lots: List[Lot], prefix: str, count: int) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for i in range(1, count + 1):
        lot = lots[i - 1] if i <= len(lots) else Lot()
        out[f"{prefix}{i}Price"] = lot.price
        out[f"{prefix}{i}Qty"] = lot.qty
        out[f"{prefix}{i}Date"] = _iso(lot.date)
    return out


@dataclass
class Trade:
    """
    One journal trade: an initial entry, up to two pyramid entries and up to
    three exits, with stop levels and a current market price.

    Dates are kept as supplied (ISO string or ``date``) and parsed where they
    are used, so a half-typed date on an in-progress record degrades the one
    metric that needs it instead of rejecting the whole trade.

    Parameters:
    - side: "Buy" or "Sell"
    - entry / initial_qty: initial entry lot; its date is the trade ``date``
    - pyramids / exits: additional entry lots and exit lots, in fill order
    - stop_loss / trailing_stop / cmp / target: price levels, 0 when unset
    - metrics: derived block, replaced wholesale by ``recalculate``
    - extra: journal fields the engine does not interpret (setup notes,
      plan-followed flags ...), carried through untouched

    Raises:
        ValueError: On an unknown side or too many pyramid/exit lots
    """

    id: str
    trade_no: str = ""
    date: DateLike = None
    name: str = ""
    setup: str = ""
    side: str = SIDE_BUY
    entry: float = 0.0
    initial_qty: float = 0.0
    stop_loss: float = 0.0
    trailing_stop: float = 0.0
    cmp: float = 0.0
    target: float = 0.0
    pyramids: List[Lot] = field(default_factory=list)
    exits: List[Lot] = field(default_factory=list)
    notes: str = ""
    metrics: TradeMetrics = field(default_factory=TradeMetrics)
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not is_valid_side(self.side):
            raise ValueError(f"Unknown trade side: {self.side!r} (expected {SIDE_BUY!r} or {SIDE_SELL!r})")
        if len(self.pyramids) > MAX_PYRAMID_LOTS:
            raise ValueError(f"A trade holds at most {MAX_PYRAMID_LOTS} pyramid lots")
        if len(self.exits) > MAX_EXIT_LOTS:
            raise ValueError(f"A trade holds at most {MAX_EXIT_LOTS} exit lots")
        self.trade_no = "" if self.trade_no is None else str(self.trade_no)
        self.name = self.name or ""
        self.entry = _to_float(self.entry)
        self.initial_qty = _to_float(self.initial_qty)
        self.stop_loss = _to_float(self.stop_loss)
        self.trailing_stop = _to_float(self.trailing_stop)
        self.cmp = _to_float(self.cmp)
        self.target = _to_float(self.target)

    @property
    def trade_date(self) -> Optional[dt.date]:
        """Parsed trade (initial entry) date, ``None`` if missing or malformed."""
        return _to_date(self.date)

    @property
    def entry_lots(self) -> List[Lot]:
        """Initial lot followed by pyramid lots, in fill order."""
        return [Lot(price=self.entry, qty=self.initial_qty, date=self.date)] + list(self.pyramids)

    @property
    def valid_entry_lots(self) -> List[Lot]:
        return [lot for lot in self.entry_lots if lot.is_valid]

    @property
    def valid_exit_lots(self) -> List[Lot]:
        return [lot for lot in self.exits if lot.is_valid]

    @property
    def total_entry_qty(self) -> float:
        return sum(lot.qty for lot in self.valid_entry_lots)

    @property
    def close_date(self) -> Optional[dt.date]:
        """Latest dated valid exit, falling back to the trade date."""
        exit_dates = [d for d in (_to_date(lot.date) for lot in self.valid_exit_lots) if d is not None]
        if exit_dates:
            return max(exit_dates)
        return self.trade_date

    def with_metrics(self, metrics: TradeMetrics, **changes: Any) -> "Trade":
        """Copy of this trade carrying ``metrics`` (and any raw-field ``changes``)."""
        return replace(
            self,
            pyramids=[replace(lot) for lot in self.pyramids],
            exits=[replace(lot) for lot in self.exits],
            extra=dict(self.extra),
            metrics=metrics,
            **changes,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Persistence record: raw camelCase fields, lot slots, derived block."""
        record: Dict[str, Any] = dict(self.extra)
        record.update(
            {
                "id": self.id,
                "tradeNo": self.trade_no,
                "date": _iso(self.date),
                "name": self.name,
                "setup": self.setup,
                "buySell": self.side,
                "entry": self.entry,
                "initialQty": self.initial_qty,
                "sl": self.stop_loss,
                "tsl": self.trailing_stop,
                "cmp": self.cmp,
                "target": self.target,
                "notes": self.notes,
            }
        )
        record.update(_lots_to_record(self.pyramids, "pyramid", MAX_PYRAMID_LOTS))
        record.update(_lots_to_record(self.exits, "exit", MAX_EXIT_LOTS))
        record.update(self.metrics.to_dict())
        return record

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Trade":
        """
        Build a Trade from a persistence record.

        Derived keys (``avgEntry``, ``cummPf`` ...) in the record are dropped:
        they are recomputed, never read back. Unknown keys go to ``extra``.
        """
        derived_keys = set(DERIVED_FIELD_KEYS.values())
        extra = {
            k: v for k, v in d.items()
            if k not in _RAW_TRADE_KEYS and k not in derived_keys
        }
        return cls(
            id=str(d.get("id", "")),
            trade_no=d.get("tradeNo", ""),
            date=d.get("date") or None,
            name=d.get("name", "") or "",
            setup=d.get("setup", "") or "",
            side=d.get("buySell", SIDE_BUY) or SIDE_BUY,
            entry=d.get("entry"),
            initial_qty=d.get("initialQty"),
            stop_loss=d.get("sl"),
            trailing_stop=d.get("tsl"),
            cmp=d.get("cmp"),
            target=d.get("target"),
            pyramids=_lots_from_record(d, "pyramid", MAX_PYRAMID_LOTS),
            exits=_lots_from_record(d, "exit", MAX_EXIT_LOTS),
            notes=d.get("notes", "") or "",
            extra=extra,
        )


@dataclass
class MonthlyPortfolioSnapshot:
    """
    Capital rollup for one calendar month.

    ``starting_capital`` is the carried-forward (or overridden) figure before
    this month's deposits/withdrawals; ``revised_starting_capital`` includes
    them; ``final_capital`` adds the month's realized trading P&L and is the
    portfolio size trades in this month are measured against.
    """

    month: str
    year: int
    starting_capital: float = 0.0
    capital_changes: float = 0.0
    revised_starting_capital: float = 0.0
    pl: float = 0.0
    final_capital: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.month}-{self.year}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "year": self.year,
            "startingCapital": self.starting_capital,
            "capitalChanges": self.capital_changes,
            "revisedStartingCapital": self.revised_starting_capital,
            "pl": self.pl,
            "finalCapital": self.final_capital,
        }
