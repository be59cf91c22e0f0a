"""Lightweight result objects for report payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

import pandas as pd

from true_portfolio_engine._vendor import make_json_safe
from true_portfolio_engine.data_objects import MonthlyPortfolioSnapshot


@dataclass
class _BaseResult:
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_api_response(self) -> Dict[str, Any]:
        return make_json_safe(self.payload)


@dataclass
class MonthlySnapshotsResult:
    """Ordered monthly capital series (Jan..Dec for every year with data)."""

    snapshots: List[MonthlyPortfolioSnapshot] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per month, indexed by month-start timestamp."""
        columns = [
            "month", "year", "starting_capital", "capital_changes",
            "revised_starting_capital", "pl", "final_capital",
        ]
        if not self.snapshots:
            return pd.DataFrame(columns=columns)
        frame = pd.DataFrame(
            [
                {
                    "month": s.month,
                    "year": s.year,
                    "starting_capital": s.starting_capital,
                    "capital_changes": s.capital_changes,
                    "revised_starting_capital": s.revised_starting_capital,
                    "pl": s.pl,
                    "final_capital": s.final_capital,
                }
                for s in self.snapshots
            ],
            columns=columns,
        )
        frame.index = pd.to_datetime(
            frame["year"].astype(str) + "-" + frame["month"], format="%Y-%b"
        )
        frame.index.name = "period"
        return frame

    def to_api_response(self) -> Dict[str, Any]:
        return make_json_safe({"snapshots": [s.to_dict() for s in self.snapshots]})


@dataclass
class PortfolioSummaryResult(_BaseResult):
    """Aggregate figures: portfolio size, open heat, realized P&L, XIRR, flags."""

    @classmethod
    def from_summary(cls, **kwargs: Any) -> "PortfolioSummaryResult":
        return cls(payload=kwargs)

    @property
    def open_heat(self) -> float:
        return float(self.payload.get("open_heat", 0.0))

    @property
    def xirr(self) -> float:
        return float(self.payload.get("xirr", 0.0))
