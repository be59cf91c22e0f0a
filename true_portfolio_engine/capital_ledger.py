"""
Capital ledger: yearly starting capitals, monthly starting-capital overrides
and dated deposits/withdrawals.

Queries are pure lookups. Mutations mirror the explicit user actions of the
journal (set a year's capital, pin a month's capital, record a deposit) and
never trigger recalculation themselves; callers re-run ``recalculate`` after
any change.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from true_portfolio_engine._vendor import _to_date
from true_portfolio_engine.constants import MONTH_INDEX, MONTHS, normalize_month
from true_portfolio_engine.data_objects import (
    CapitalChangeEvent,
    DateLike,
    MonthlyStartingCapitalOverride,
    YearlyStartingCapital,
)


logger = logging.getLogger(__name__)


class CapitalLedger:
    """
    In-memory view of the three capital collections.

    Example:
        ledger = CapitalLedger()
        ledger.set_yearly_starting_capital(2024, 100000)
        ledger.add_capital_change("2024-03-05", 5000, "deposit")
        ledger.net_capital_change("Mar", 2024)   # 5000.0
    """

    def __init__(
        self,
        yearly_starting_capitals: Optional[Iterable[YearlyStartingCapital]] = None,
        monthly_overrides: Optional[Iterable[MonthlyStartingCapitalOverride]] = None,
        capital_changes: Optional[Iterable[CapitalChangeEvent]] = None,
    ):
        self._yearly: Dict[int, YearlyStartingCapital] = {}
        for item in yearly_starting_capitals or []:
            self._yearly[item.year] = item

        self._overrides: Dict[Tuple[str, int], MonthlyStartingCapitalOverride] = {}
        for item in monthly_overrides or []:
            self._overrides[(item.month, item.year)] = item

        self._changes: List[CapitalChangeEvent] = list(capital_changes or [])

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @property
    def yearly_starting_capitals(self) -> List[YearlyStartingCapital]:
        return [self._yearly[year] for year in sorted(self._yearly)]

    @property
    def monthly_overrides(self) -> List[MonthlyStartingCapitalOverride]:
        return [
            self._overrides[key]
            for key in sorted(self._overrides, key=lambda k: (k[1], MONTH_INDEX[k[0]]))
        ]

    @property
    def capital_changes(self) -> List[CapitalChangeEvent]:
        return list(self._changes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_yearly_starting_capital(self, year: int) -> float:
        """Starting capital recorded for ``year``; 0 when none is recorded."""
        item = self._yearly.get(int(year))
        return item.starting_capital if item else 0.0

    def get_monthly_override(self, month: Any, year: int) -> Optional[float]:
        """Pinned starting capital for (month, year), or ``None``."""
        item = self._overrides.get((normalize_month(month), int(year)))
        return item.starting_capital if item else None

    def net_capital_change(self, month: Any, year: int) -> float:
        """Deposits minus withdrawals dated inside the calendar month."""
        return self.net_capital_changes_by_month().get((normalize_month(month), int(year)), 0.0)

    def net_capital_changes_by_month(self) -> Dict[Tuple[str, int], float]:
        """Net capital change keyed by (short month, year) for every month with events."""
        totals: Dict[Tuple[str, int], float] = defaultdict(float)
        for change in self._changes:
            if change.date is None:
                continue
            totals[(MONTHS[change.date.month - 1], change.date.year)] += change.signed_amount
        return dict(totals)

    def capital_changes_between(self, start: DateLike, end: DateLike) -> List[CapitalChangeEvent]:
        """Dated events with ``start < date <= end``, oldest first."""
        start_d, end_d = _to_date(start), _to_date(end)
        selected = [
            change for change in self._changes
            if change.date is not None
            and (start_d is None or change.date > start_d)
            and (end_d is None or change.date <= end_d)
        ]
        return sorted(selected, key=lambda c: c.date)

    def years_with_data(self) -> Set[int]:
        """Years that have a yearly capital or at least one dated capital change."""
        years = set(self._yearly)
        years.update(change.date.year for change in self._changes if change.date is not None)
        return years

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_yearly_starting_capital(self, year: int, amount: float) -> YearlyStartingCapital:
        item = YearlyStartingCapital(year=year, starting_capital=amount, updated_at=datetime.now())
        self._yearly[item.year] = item
        logger.debug("Yearly starting capital set: %s -> %.2f", item.year, item.starting_capital)
        return item

    def set_monthly_override(self, month: Any, year: int, amount: float) -> MonthlyStartingCapitalOverride:
        item = MonthlyStartingCapitalOverride(
            month=month, year=year, starting_capital=amount, updated_at=datetime.now()
        )
        self._overrides[(item.month, item.year)] = item
        logger.debug("Monthly override set: %s -> %.2f", item.id, item.starting_capital)
        return item

    def remove_monthly_override(self, month: Any, year: int) -> bool:
        """Drop the override for (month, year); returns whether one existed."""
        removed = self._overrides.pop((normalize_month(month), int(year)), None)
        return removed is not None

    def add_capital_change(
        self,
        date: DateLike,
        amount: float,
        kind: str,
        description: str = "",
    ) -> CapitalChangeEvent:
        change = CapitalChangeEvent(
            id=f"capital_{uuid.uuid4().hex}",
            date=date,
            amount=amount,
            kind=kind,
            description=description,
        )
        self._changes.append(change)
        return change

    def update_capital_change(self, change: CapitalChangeEvent) -> bool:
        """Replace the event with the same id; returns whether it was found."""
        for i, existing in enumerate(self._changes):
            if existing.id == change.id:
                self._changes[i] = change
                return True
        logger.debug("update_capital_change: no event with id %s", change.id)
        return False

    def delete_capital_change(self, change_id: str) -> bool:
        before = len(self._changes)
        self._changes = [c for c in self._changes if c.id != change_id]
        if len(self._changes) == before:
            logger.debug("delete_capital_change: no event with id %s", change_id)
            return False
        return True

    # ------------------------------------------------------------------
    # Persistence records
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "yearlyStartingCapitals": [item.to_dict() for item in self.yearly_starting_capitals],
            "monthlyStartingCapitalOverrides": [item.to_dict() for item in self.monthly_overrides],
            "capitalChanges": [item.to_dict() for item in self._changes],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CapitalLedger":
        return cls(
            yearly_starting_capitals=[
                YearlyStartingCapital.from_dict(item) for item in d.get("yearlyStartingCapitals") or []
            ],
            monthly_overrides=[
                MonthlyStartingCapitalOverride.from_dict(item)
                for item in d.get("monthlyStartingCapitalOverrides") or []
            ],
            capital_changes=[
                CapitalChangeEvent.from_dict(item) for item in d.get("capitalChanges") or []
            ],
        )
