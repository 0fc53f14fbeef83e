from datetime import date, datetime, timezone
from decimal import Decimal

import pandas as pd

from migration_engine.domain.migrations.state import JobState
from migration_engine.utils.serialization import to_json_safe


def test_naive_and_aware_datetimes_serialise_identically():
    aware = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
    naive = datetime(2024, 1, 15, 9, 30)

    assert to_json_safe(aware) == to_json_safe(naive) == "2024-01-15T09:30:00+00:00"
    assert to_json_safe(pd.Timestamp("2024-01-15 09:30", tz="UTC")) == "2024-01-15T09:30:00+00:00"


def test_missing_markers_become_none():
    assert to_json_safe(float("nan")) is None
    assert to_json_safe(pd.NaT) is None
    assert to_json_safe(None) is None


def test_nested_values():
    value = {
        "state": JobState.COMPLETED,
        "amount": Decimal("10.50"),
        "count": Decimal("3"),
        "reported": date(2024, 3, 10),
        "tags": ("a", "b"),
        1: True,
    }

    assert to_json_safe(value) == {
        "state": "COMPLETED",
        "amount": "10.50",
        "count": 3,
        "reported": "2024-03-10",
        "tags": ["a", "b"],
        "1": True,
    }
