"""
Core Constants Module

Centralized definitions for calendar months, trade sides, position statuses
and capital-change kinds. This prevents hardcoded strings scattered across
the valuation and metrics modules.
"""

from true_portfolio_engine.exceptions import InvalidMonthError

# Calendar Months
# ===============
# Short month names are the canonical month token everywhere in the engine
# (override keys, snapshot labels, memo keys).

MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
          'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

FULL_MONTH_NAMES = {
    'January': 'Jan',
    'February': 'Feb',
    'March': 'Mar',
    'April': 'Apr',
    'May': 'May',
    'June': 'Jun',
    'July': 'Jul',
    'August': 'Aug',
    'September': 'Sep',
    'October': 'Oct',
    'November': 'Nov',
    'December': 'Dec',
}

MONTH_INDEX = {name: i for i, name in enumerate(MONTHS)}

# Trade Sides
# ===========

SIDE_BUY = 'Buy'
SIDE_SELL = 'Sell'
VALID_SIDES = {SIDE_BUY, SIDE_SELL}

# Position Statuses
# =================
# Derived from lot quantities during recalculation, never authoritative.

STATUS_OPEN = 'Open'
STATUS_CLOSED = 'Closed'
STATUS_PARTIAL = 'Partial'
HEAT_STATUSES = {STATUS_OPEN, STATUS_PARTIAL}

# Capital Change Kinds
# ====================

DEPOSIT = 'deposit'
WITHDRAWAL = 'withdrawal'
VALID_CAPITAL_CHANGE_KINDS = {DEPOSIT, WITHDRAWAL}

# Trade Record Limits
# ===================

MAX_PYRAMID_LOTS = 2
MAX_EXIT_LOTS = 3

# Validation Functions
# ===================

def is_valid_side(side: str) -> bool:
    """Check if a trade side is valid."""
    return side in VALID_SIDES

def is_valid_capital_change_kind(kind: str) -> bool:
    """Check if a capital change kind is valid."""
    return kind in VALID_CAPITAL_CHANGE_KINDS

def month_number(month: str) -> int:
    """1-based calendar number for a short month name."""
    return MONTH_INDEX[month] + 1

def normalize_month(month) -> str:
    """
    Normalize a month token to its short name.

    Accepts short names ("Jan"), full names ("January"), either in any case,
    and calendar numbers 1-12.

    Raises:
        InvalidMonthError: If the token does not name a calendar month
    """
    if isinstance(month, bool):
        raise InvalidMonthError(month)
    if isinstance(month, int):
        if 1 <= month <= 12:
            return MONTHS[month - 1]
        raise InvalidMonthError(month)
    if not isinstance(month, str):
        raise InvalidMonthError(month)

    token = month.strip().title()
    if token in MONTH_INDEX:
        return token
    if token in FULL_MONTH_NAMES:
        return FULL_MONTH_NAMES[token]
    raise InvalidMonthError(month)
