"""
Pytest configuration and shared fixtures for true_portfolio_engine tests.

Usage:
    @pytest.fixture functions are automatically available to all tests.
    Import helpers from conftest when needed.
"""
import sys
from datetime import date
from pathlib import Path
from typing import Any

import pytest


def pytest_configure():
    """
    Ensure the repository root is on sys.path for the flat-layout package
    import (`true_portfolio_engine`) without requiring an editable install.
    """
    root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(root))


AS_OF = date(2024, 12, 31)


# =============================================================================
# Test Data Helpers
# =============================================================================

def make_trade(**overrides: Any):
    """
    Create a Trade with sensible defaults for testing.

    Usage:
        trade = make_trade(entry=100, initial_qty=10, exits=[Lot(120, 10, "2024-01-20")])
    """
    from true_portfolio_engine.data_objects import Trade

    defaults = {
        "id": "t1",
        "trade_no": "1",
        "date": "2024-01-02",
        "name": "acme",
        "side": "Buy",
        "entry": 100.0,
        "initial_qty": 10.0,
        "stop_loss": 90.0,
    }
    defaults.update(overrides)
    return Trade(**defaults)


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def ledger():
    """Ledger with 100,000 starting capital for 2024 and nothing else."""
    from true_portfolio_engine.capital_ledger import CapitalLedger

    book = CapitalLedger()
    book.set_yearly_starting_capital(2024, 100000)
    return book


@pytest.fixture
def sample_trades():
    """Three 2024 trades: closed winner, partial pyramid, open position."""
    from true_portfolio_engine.data_objects import Lot

    return [
        make_trade(
            id="t2",
            trade_no="2",
            date="2024-02-05",
            name="beta",
            entry=100.0,
            initial_qty=10.0,
            pyramids=[Lot(110.0, 10.0, "2024-02-10")],
            exits=[Lot(120.0, 15.0, "2024-02-20")],
            cmp=125.0,
        ),
        make_trade(
            id="t1",
            trade_no="1",
            date="2024-01-02",
            name="alpha",
            entry=100.0,
            initial_qty=100.0,
            exits=[Lot(110.0, 100.0, "2024-01-20")],
        ),
        make_trade(
            id="t3",
            trade_no="3",
            date="2024-03-01",
            name="gamma",
            entry=50.0,
            initial_qty=200.0,
            stop_loss=45.0,
            cmp=55.0,
        ),
    ]
