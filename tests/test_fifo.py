from __future__ import annotations

import pytest

from true_portfolio_engine.data_objects import Lot
from true_portfolio_engine.fifo import match_fifo, match_fifo_lots


def _lots(*pairs):
    return [Lot(price, qty) for price, qty in pairs]


def test_two_entries_one_exit_buy():
    entries = _lots((100, 10), (110, 10))
    exits = _lots((120, 15))

    # 10 * (120 - 100) + 5 * (120 - 110)
    assert match_fifo(entries, exits, "Buy") == pytest.approx(250.0)


def test_sell_side_profits_when_exit_below_entry():
    assert match_fifo(_lots((100, 10)), _lots((90, 10)), "Sell") == pytest.approx(100.0)
    assert match_fifo(_lots((100, 10)), _lots((110, 10)), "Sell") == pytest.approx(-100.0)


def test_entries_consumed_in_given_order_not_by_price():
    entries = _lots((120, 5), (100, 5))
    exits = _lots((110, 5))

    assert match_fifo(entries, exits, "Buy") == pytest.approx(-50.0)


def test_multiple_exits_span_entry_lots():
    entries = _lots((100, 10), (110, 10))
    exits = _lots((120, 5), (130, 10))

    result = match_fifo_lots(entries, exits, "Buy")

    # 5@100->120, 5@100->130, 5@110->130
    assert result.realized_pl == pytest.approx(100.0 + 150.0 + 100.0)
    assert result.matched_qty == pytest.approx(15.0)
    assert [(m.entry_price, m.exit_price, m.qty) for m in result.matches] == [
        (100, 120, 5),
        (100, 130, 5),
        (110, 130, 5),
    ]


def test_excess_exit_quantity_is_ignored():
    result = match_fifo_lots(_lots((100, 10)), _lots((110, 15)), "Buy")

    assert result.realized_pl == pytest.approx(100.0)
    assert result.matched_qty == pytest.approx(10.0)
    assert result.unmatched_exit_qty == pytest.approx(5.0)


def test_no_exits_no_pl():
    assert match_fifo(_lots((100, 10)), [], "Buy") == 0.0


@pytest.mark.parametrize(
    "entries,exits",
    [
        (((100, 10),), ((90, 3), (95, 3))),
        (((100, 1), (50, 2), (75, 3)), ((80, 10),)),
        (((10, 5),), ((12, 1), (13, 1), (14, 1))),
    ],
)
def test_matched_quantity_bounded_and_sign_follows_direction(entries, exits):
    entry_lots, exit_lots = _lots(*entries), _lots(*exits)

    result = match_fifo_lots(entry_lots, exit_lots, "Buy")

    total_entry = sum(q for _, q in entries)
    total_exit = sum(q for _, q in exits)
    assert result.matched_qty <= min(total_entry, total_exit) + 1e-9
    for match in result.matches:
        assert (match.pl > 0) == (match.exit_price > match.entry_price) or match.pl == 0


def test_input_lots_not_mutated():
    entries = _lots((100, 10), (110, 10))
    exits = _lots((120, 15))

    match_fifo(entries, exits, "Buy")

    assert [lot.qty for lot in entries] == [10, 10]
    assert [lot.qty for lot in exits] == [15]
