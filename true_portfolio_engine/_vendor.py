"""Small vendored helpers for serialization/coercion."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

import numpy as np
import pandas as pd


def make_json_safe(obj: Any) -> Any:
    """Recursively convert values into JSON-serializable forms."""
    if isinstance(obj, dict):
        out = {}
        for key, value in obj.items():
            if isinstance(key, (pd.Timestamp, datetime, date)):
                safe_key = key.isoformat()
            elif isinstance(key, (int, float, str, bool, type(None))):
                safe_key = key
            else:
                safe_key = str(key)
            out[safe_key] = make_json_safe(value)
        return out

    if isinstance(obj, (list, tuple)):
        return [make_json_safe(item) for item in obj]

    if isinstance(obj, pd.DataFrame):
        return [make_json_safe(row) for row in obj.to_dict("records")]

    if isinstance(obj, pd.Series):
        return {str(k): make_json_safe(v) for k, v in obj.to_dict().items()}

    if isinstance(obj, np.ndarray):
        return obj.tolist()

    if isinstance(obj, np.integer):
        return int(obj)

    if isinstance(obj, np.floating):
        value = float(obj)
        return None if np.isnan(value) else value

    if isinstance(obj, np.bool_):
        return bool(obj)

    if isinstance(obj, pd.Timestamp):
        return obj.date().isoformat() if obj == obj.normalize() else obj.isoformat()

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    if isinstance(obj, float) and np.isnan(obj):
        return None

    if isinstance(obj, (int, float, str, bool, type(None))):
        return obj

    return str(obj)


def _to_float(value: Any, default: float = 0.0) -> float:
    """Convert a form value to a finite float; blanks and junk become ``default``."""
    if value is None or value == "":
        return default
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if np.isnan(out) or not np.isfinite(out):
        return default
    return out


def _to_date(value: Any) -> Optional[date]:
    """Convert a date-like value to a naive ``date``; ``None`` when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime().date()


def _to_datetime(value: Any) -> Optional[datetime]:
    """Convert value to naive datetime where possible."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime().replace(tzinfo=None)
