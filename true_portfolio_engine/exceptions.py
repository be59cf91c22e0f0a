"""Engine exceptions."""

from __future__ import annotations

from typing import Any


class InvalidMonthError(ValueError):
    """Raised when a month token cannot be normalized to Jan..Dec.

    This signals a data-integrity bug upstream (a corrupt override record or
    a caller passing a malformed month); callers should not try to recover.
    """

    def __init__(self, month: Any):
        self.month = month
        super().__init__(
            f"Invalid month: {month!r}. Expected short month names like 'Jan', 'Feb', etc."
        )
