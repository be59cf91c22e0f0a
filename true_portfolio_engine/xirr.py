"""Annualized return (XIRR) over irregularly dated cash flows.

Newton-Raphson on NPV(rate) = sum(cf_i / (1 + rate) ** t_i), with t_i the
year fraction since the first flow. Degenerate inputs return 0 rather than
raising: a portfolio with no sign change in its flows simply has no
meaningful annualized return.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from true_portfolio_engine import config
from true_portfolio_engine._vendor import _to_date
from true_portfolio_engine.data_objects import CapitalChangeEvent, DateLike


logger = logging.getLogger(__name__)

CashFlow = Union[CapitalChangeEvent, Tuple[DateLike, float]]


def _year_fractions(dates: Sequence[DateLike], days_per_year: float) -> Optional[np.ndarray]:
    parsed = [_to_date(d) for d in dates]
    if any(d is None for d in parsed):
        return None
    origin = parsed[0]
    return np.array([(d - origin).days for d in parsed], dtype=float) / days_per_year


def xirr(dates: Sequence[DateLike], cash_flows: Sequence[float], guess: Optional[float] = None) -> float:
    """
    Solve for the annualized rate that zeroes the NPV of ``cash_flows``.

    Args:
        dates: Flow dates; the first one is the time origin.
        cash_flows: Signed amounts (investments negative, proceeds positive).
        guess: Starting rate, defaults to ``XIRR_DEFAULTS["guess"]``.

    Returns:
        Rate as a decimal (0.10 == 10%). 0.0 when there are fewer than two
        flows, mismatched lengths, unparseable dates or no sign change. When
        the iteration cap is reached the last iterate is returned.
    """
    settings = config.XIRR_DEFAULTS
    tolerance = float(settings["tolerance"])
    max_iterations = int(settings["max_iterations"])
    rate = float(settings["guess"] if guess is None else guess)

    if len(dates) != len(cash_flows) or len(dates) < 2:
        return 0.0

    flows = np.asarray(cash_flows, dtype=float)
    if not (flows > 0).any() or not (flows < 0).any():
        return 0.0

    years = _year_fractions(dates, float(settings["days_per_year"]))
    if years is None:
        logger.warning("xirr: unparseable date in cash-flow series; returning 0")
        return 0.0

    for _ in range(max_iterations):
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            discount = np.power(1.0 + rate, years)
            npv = float(np.sum(flows / discount))
        if abs(npv) < tolerance:
            return rate

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            derivative = float(np.sum(-years * flows / (discount * (1.0 + rate))))
        if derivative == 0 or not np.isfinite(derivative):
            logger.warning("xirr: degenerate derivative at rate %.6f; returning 0", rate)
            return 0.0

        new_rate = rate - npv / derivative
        if not np.isfinite(new_rate):
            logger.warning("xirr: iteration diverged from rate %.6f; returning 0", rate)
            return 0.0
        if abs(new_rate - rate) < tolerance:
            return new_rate
        rate = new_rate

    logger.debug("xirr: no convergence after %d iterations, last rate %.6f", max_iterations, rate)
    return rate


def _as_flow(flow: CashFlow) -> Tuple[DateLike, float]:
    if isinstance(flow, CapitalChangeEvent):
        return flow.date, flow.signed_amount
    when, amount = flow
    return when, float(amount)


def build_cash_flow_series(
    start_date: DateLike,
    starting_capital: float,
    end_date: DateLike,
    ending_capital: float,
    interim_cash_flows: Iterable[CashFlow] = (),
) -> Tuple[List[DateLike], List[float]]:
    """Investor-perspective flow series, sorted by date.

    The starting capital is an outflow, the ending capital an inflow. Interim
    deposits are added positive and withdrawals negative, matching the sign
    convention of the journal's capital-change records.
    """
    flows = [(start_date, -float(starting_capital))]
    flows.extend(_as_flow(flow) for flow in interim_cash_flows)
    flows.append((end_date, float(ending_capital)))

    dated = [(_to_date(when), amount) for when, amount in flows]
    if any(when is None for when, _ in dated):
        return [when for when, _ in flows], [amount for _, amount in flows]
    dated.sort(key=lambda item: item[0])
    return [when for when, _ in dated], [amount for _, amount in dated]


def calc_xirr(
    start_date: DateLike,
    starting_capital: float,
    end_date: DateLike,
    ending_capital: float,
    interim_cash_flows: Iterable[CashFlow] = (),
) -> float:
    """Portfolio XIRR in percent between two capital marks."""
    dates, flows = build_cash_flow_series(
        start_date, starting_capital, end_date, ending_capital, interim_cash_flows
    )
    return xirr(dates, flows) * 100
