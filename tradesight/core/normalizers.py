# tradesight/core/normalizers.py
"""
Total parsers for loosely-typed values coming out of a model response.

Every function here maps "any shape" to a canonical value or None and never
raises: a field that cannot be read is simply absent from the record.
"""
from __future__ import annotations

import math
import re
import warnings
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import pandas as pd

_CURRENCY_RE = re.compile(r"[$€£¥+\s]")
_UNIT_PREFIX_RE = re.compile(r"^[A-Za-z]+")
_UNIT_SUFFIX_RE = re.compile(r"[A-Za-z]+$")

_MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}
# "Jun 16, 8:50:55 PM", "June 16, 8:50 PM", "Sept 5 20:50:55"
_CLOCK_RE = re.compile(
    r"\b([A-Za-z]{3})[A-Za-z]*\.?\s+(\d{1,2}),?\s+(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\s*([AP]M)\b)?",
    re.IGNORECASE,
)
_YEAR_RE = re.compile(r"\b\d{4}\b")


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

def parse_number(value: Any) -> Optional[float]:
    """
    "3,401.188" -> 3401.188, "(45.00)" -> -45.0, "$1,250" -> 1250.0,
    "548.5579 USDT" -> 548.5579. Empty, null or unparseable -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    if not text:
        return None

    text = _CURRENCY_RE.sub("", text)
    text = text.replace(",", "")
    # Unit labels printed next to amounts (USDT, USD, lots)
    text = _UNIT_PREFIX_RE.sub("", text)
    text = _UNIT_SUFFIX_RE.sub("", text)

    if "(" in text and ")" in text:
        text = "-" + text.replace("(", "").replace(")", "")

    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


# ---------------------------------------------------------------------------
# Date / time
# ---------------------------------------------------------------------------

def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_iso(text: str, now: datetime) -> Optional[datetime]:
    if "T" not in text or "-" not in text:
        return None
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    return _as_utc(datetime.fromisoformat(candidate))


def _parse_clock(text: str, now: datetime) -> Optional[datetime]:
    match = _CLOCK_RE.search(text)
    if not match:
        return None
    month_name, day, hour, minute, second, meridiem = match.groups()
    month = _MONTHS.get(month_name.title())
    if month is None:
        return None

    hour24 = int(hour)
    if meridiem:
        if hour24 > 12:
            return None
        if meridiem.upper() == "PM" and hour24 != 12:
            hour24 += 12
        elif meridiem.upper() == "AM" and hour24 == 12:
            hour24 = 0

    return datetime(
        now.year, month, int(day), hour24, int(minute), int(second or 0),
        tzinfo=timezone.utc,
    )


def _parse_generic(text: str, now: datetime) -> Optional[datetime]:
    with warnings.catch_warnings():
        # pandas warns when it has to guess the format; guessing is the point here
        warnings.simplefilter("ignore")
        ts = pd.to_datetime(text, errors="coerce")
    if ts is None or pd.isna(ts):
        return None

    parsed = ts.to_pydatetime()
    # pandas fills a missing year with 1
    if parsed.year < 1970 and not _YEAR_RE.search(text):
        parsed = parsed.replace(year=now.year)
    return _as_utc(parsed)


# Tried in order, first hit wins
DATETIME_STRATEGIES: List[Callable[[str, datetime], Optional[datetime]]] = [
    _parse_iso,
    _parse_clock,
    _parse_generic,
]


def parse_datetime(value: Any, *, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse ISO-8601, "Jun 16, 8:50:55 PM" style (year taken from `now`) or
    anything pandas can read into a timezone-aware UTC datetime.

    Invalid or unrepresentable dates -> None. A strategy that fails, including
    one whose UTC conversion falls outside the datetime range, hands over to
    the next.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        try:
            return _as_utc(value)
        except (ValueError, OverflowError):
            return None

    text = str(value).strip()
    if not text:
        return None

    reference = now or datetime.now(timezone.utc)
    for strategy in DATETIME_STRATEGIES:
        try:
            parsed = strategy(text, reference)
        except (ValueError, TypeError, OverflowError):
            continue
        if parsed is not None:
            return parsed
    return None


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string or None for null/blank values."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "n/a"):
        return None
    return text
