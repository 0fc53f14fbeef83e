"""
JSON-safe conversion for values headed into JSON columns (previews, error
samples, entity snapshots).

Snapshots are hashed at import time and again at rollback time, so the
same stored value must always serialise to the same text: datetimes are
normalised to UTC and the various "missing" markers collapse to ``None``.
"""
import math
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import pandas as pd

from migration_engine.utils.date import ensure_utc


def to_json_safe(value: Any) -> Any:
    """Recursively convert ``value`` into plain JSON types."""
    if isinstance(value, dict):
        return {str(key): to_json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(item) for item in value]
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, Enum):
        return to_json_safe(value.value)
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, Decimal):
        if value == value.to_integral():
            return int(value)
        return str(value)
    if isinstance(value, pd.Timestamp):
        return to_json_safe(value.to_pydatetime())
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode(errors="ignore")
    if isinstance(value, (int, str)):
        return value
    return str(value)
