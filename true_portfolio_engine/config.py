"""Standalone-safe configuration surface for true_portfolio_engine."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Explicit process env wins over the local .env file.
load_dotenv(Path.cwd() / ".env", override=False)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in choices:
        raise ValueError(f"{name} must be one of {sorted(choices)}, got {value!r}")
    return value


VALID_PL_ATTRIBUTIONS = {"exit_date", "trade_date"}


_DEFAULTS: dict[str, Any] = {
    "XIRR_DEFAULTS": {
        "guess": _env_float("TPE_XIRR_GUESS", 0.1),
        "tolerance": _env_float("TPE_XIRR_TOLERANCE", 1e-7),
        "max_iterations": _env_int("TPE_XIRR_MAX_ITERATIONS", 100),
        "days_per_year": _env_float("TPE_XIRR_DAYS_PER_YEAR", 365.0),
    },
    # "exit_date": realized P&L lands in the month the trade closed.
    # "trade_date": realized P&L lands in the month the trade was opened.
    "PL_ATTRIBUTION": _env_choice("TPE_PL_ATTRIBUTION", "exit_date", VALID_PL_ATTRIBUTIONS),
    "HOLDING_DAYS_MIN": _env_int("TPE_HOLDING_DAYS_MIN", 1),
    "SLOW_RECALCULATION_SECONDS": _env_float("TPE_SLOW_RECALCULATION_SECONDS", 1.0),
}


XIRR_DEFAULTS = _DEFAULTS["XIRR_DEFAULTS"]
PL_ATTRIBUTION = str(_DEFAULTS["PL_ATTRIBUTION"])
HOLDING_DAYS_MIN = int(_DEFAULTS["HOLDING_DAYS_MIN"])
SLOW_RECALCULATION_SECONDS = float(_DEFAULTS["SLOW_RECALCULATION_SECONDS"])


def configure(**overrides: Any) -> None:
    """Programmatically override package configuration values."""
    globals_dict = globals()
    for key, value in overrides.items():
        if key not in _DEFAULTS:
            raise KeyError(f"Unknown config key: {key}")
        if key == "PL_ATTRIBUTION" and value not in VALID_PL_ATTRIBUTIONS:
            raise ValueError(
                f"PL_ATTRIBUTION must be one of {sorted(VALID_PL_ATTRIBUTIONS)}, got {value!r}"
            )
        globals_dict[key] = value


def get_config() -> dict[str, Any]:
    """Snapshot of the current configuration values."""
    return {key: globals()[key] for key in _DEFAULTS}
