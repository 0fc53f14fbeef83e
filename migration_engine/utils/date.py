"""
Date parsing utilities for flexible date format handling.

Competitor exports carry dates in whatever format the source system's
locale produced. This module tries the common layouts in a fixed order
and falls back to pandas' parser so every value is normalised to a UTC
``datetime`` (or ``None`` when it cannot be understood).
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd

from migration_engine.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

_failure_stats: dict = {}

_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ](\d{2}):(\d{2})(?::(\d{2}))?)?")
_SLASHED = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _record_parse_failure(value: Any, context: Optional[str], error: Exception) -> None:
    """
    Collect failure stats and emit limited logs (sampled warnings + periodic summaries).
    """
    key = context or "default"
    stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
    stats["count"] += 1
    count = stats["count"]

    if len(stats["samples"]) < FAILED_SAMPLE_LIMIT:
        stats["samples"].append(value)
        logger.warning("Failed to parse date%s value '%s': %s", f" ({key})" if context else "", value, error)
        return

    # Emit a single summary when suppression starts, then periodically.
    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse warnings after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            stats["samples"],
        )


def _parse_iso(text: str) -> Optional[datetime]:
    match = _ISO_PREFIX.match(text)
    if not match:
        return None
    year, month, day, hour, minute, second = match.groups()
    return datetime(
        int(year), int(month), int(day),
        int(hour or 0), int(minute or 0), int(second or 0),
        tzinfo=timezone.utc,
    )


def _parse_slashed(text: str, dayfirst: bool) -> Optional[datetime]:
    match = _SLASHED.match(text)
    if not match:
        return None
    first, second, year = (int(part) for part in match.groups())
    orders = [(second, first), (first, second)] if dayfirst else [(first, second), (second, first)]
    for month, day in orders:
        try:
            return datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_flexible_date(
    value: Any,
    *,
    dayfirst: Optional[bool] = None,
    log_context: Optional[str] = None,
    log_failures: bool = True,
) -> Optional[datetime]:
    """
    Parse a date value from various formats and return a UTC datetime.

    Attempts, in order:
    - ISO 8601 date or datetime prefix: "2024-09-04", "2024-09-04T23:09:18Z"
    - US MM/DD/YYYY: "10/20/2025"
    - EU DD/MM/YYYY: "20/10/2025"
    - pandas inference for everything else ("Sep 4, 2024", "4 September 2024")

    Ambiguous slashed values (both parts <= 12) are read month-first unless
    ``dayfirst`` (or ``settings.date_default_dayfirst``) says otherwise.

    Returns:
        Timezone-aware UTC datetime or None if parsing fails
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    text = str(value).strip()
    if text == "":
        return None

    if dayfirst is None:
        dayfirst = settings.date_default_dayfirst

    last_error: Optional[Exception] = None
    try:
        parsed = _parse_iso(text)
        if parsed is None:
            parsed = _parse_slashed(text, dayfirst)
        if parsed is not None:
            return parsed
    except ValueError as exc:
        last_error = exc

    try:
        stamp = pd.to_datetime(text, utc=True, dayfirst=dayfirst, errors="raise")
        if not pd.isna(stamp):
            return stamp.to_pydatetime()
    except (ValueError, TypeError, OverflowError) as exc:
        last_error = exc

    if log_failures:
        _record_parse_failure(text, log_context, last_error or ValueError("Unable to determine format"))
    return None


def detect_date_column(values: list) -> bool:
    """
    Detect if a column contains date values based on pattern analysis.

    At least half of the (up to 20) non-empty sample values must parse.
    Bare numbers are never treated as dates.
    """
    non_null_values = [str(v).strip() for v in values if v is not None and str(v).strip()]
    if not non_null_values:
        return False

    checked = non_null_values[:20]
    successful_parses = 0
    for value in checked:
        if re.fullmatch(r"[\d.,]+", value):
            continue
        if parse_flexible_date(value, log_failures=False) is not None:
            successful_parses += 1

    return (successful_parses / len(checked)) >= 0.5
