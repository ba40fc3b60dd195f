"""
Timeframe grammar shared by the intent parser and the query executor.

The parser only *extracts* phrases (``extract_timeframe``); the executor
turns them into concrete windows against its clock (``resolve_window``).
Keeping both directions in one module means a phrase the parser recognises
is always one the executor can resolve.

Supported phrases:
  - today, yesterday, this week (Sunday start), this month, this year
  - last/past/previous [N] days|weeks|months|quarters|years  (N defaults to 1)
  - Q1..Q4 YYYY
  - in/during YYYY
  - from|between YYYY-MM-DD to|and|until|through YYYY-MM-DD  (explicit range)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

import pandas as pd

_ONE_TICK = timedelta(microseconds=1)

RANGE_RE = re.compile(
    r"\b(?:from|between)\s+(\d{4}-\d{2}-\d{2})\s+(?:to|and|until|through)\s+(\d{4}-\d{2}-\d{2})\b",
    re.IGNORECASE,
)
RELATIVE_RE = re.compile(
    r"\b(?:last|past|previous)\s+(?:(\d+)\s+)?(days?|weeks?|months?|quarters?|years?)\b",
    re.IGNORECASE,
)
QUARTER_RE = re.compile(r"\bq([1-4])\s+(\d{4})\b", re.IGNORECASE)
CURRENT_RE = re.compile(r"\b(today|yesterday|this\s+week|this\s+month|this\s+year)\b", re.IGNORECASE)
IN_YEAR_RE = re.compile(r"\b(?:in|during)\s+((?:19|20)\d{2})\b", re.IGNORECASE)

# Resolution also accepts the bare "3 months" form produced by older callers.
_WINDOW_RE = re.compile(
    r"(?:\b(?:last|past|previous)\s+(?:(\d+)\s+)?|\b(\d+)\s+)(days?|weeks?|months?|quarters?|years?)\b"
)
_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")


@dataclass(frozen=True)
class Timeframe:
    """Either a relative phrase or an explicit [start, end] range (inclusive)."""
    relative: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_range(self) -> bool:
        return self.start is not None or self.end is not None

    def describe(self) -> str:
        """Human phrase usable after 'What happened ...'."""
        if self.is_range:
            start = self.start.date().isoformat() if self.start else "the beginning"
            end = self.end.date().isoformat() if self.end else "now"
            return f"between {start} and {end}"
        rel = (self.relative or "").strip()
        if not rel:
            return "recently"
        if rel in {"today", "yesterday"} or rel.startswith("this "):
            return rel
        if QUARTER_RE.fullmatch(rel):
            return "in " + rel.upper()
        return f"in the {rel}" if RELATIVE_RE.match(rel) else f"in {rel}"


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())


def _singular(unit: str) -> str:
    return unit[:-1] if unit.endswith("s") else unit


# ---------------------------------------------------------------------------
# Extraction (parser side)
# ---------------------------------------------------------------------------

def extract_timeframe(text: str) -> Optional[Timeframe]:
    """Find the first supported timeframe phrase in ``text``."""
    if not text:
        return None

    m = RANGE_RE.search(text)
    if m:
        start = pd.to_datetime(m.group(1), errors="coerce")
        end = pd.to_datetime(m.group(2), errors="coerce")
        if not pd.isna(start) and not pd.isna(end):
            first, last = sorted([start.to_pydatetime(), end.to_pydatetime()])
            # end date is inclusive: run to the last tick of that day
            return Timeframe(
                relative=_squash(m.group(0)),
                start=first,
                end=last + timedelta(days=1) - _ONE_TICK,
            )

    m = RELATIVE_RE.search(text)
    if m:
        return Timeframe(relative=_squash(m.group(0)))

    m = QUARTER_RE.search(text)
    if m:
        return Timeframe(relative=f"q{m.group(1)} {m.group(2)}")

    m = CURRENT_RE.search(text)
    if m:
        return Timeframe(relative=_squash(m.group(1)))

    m = IN_YEAR_RE.search(text)
    if m:
        return Timeframe(relative=m.group(1))

    return None


def strip_timeframes(text: str) -> str:
    """Remove every recognised timeframe phrase from ``text``."""
    for pattern in (RANGE_RE, RELATIVE_RE, QUARTER_RE, CURRENT_RE, IN_YEAR_RE):
        text = pattern.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


# ---------------------------------------------------------------------------
# Resolution (executor side)
# ---------------------------------------------------------------------------

def _day_start(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)


def _shift_back(now: datetime, amount: int, unit: str) -> datetime:
    """``now`` minus ``amount`` units, clamped to datetime.min when that falls off the calendar."""
    unit = _singular(unit)
    try:
        if unit == "day":
            return now - timedelta(days=amount)
        if unit == "week":
            return now - timedelta(weeks=amount)
        months = {"month": 1, "quarter": 3, "year": 12}[unit] * amount
        return (pd.Timestamp(now) - pd.DateOffset(months=months)).to_pydatetime()
    except (OverflowError, ValueError):  # ValueError covers pd.errors.OutOfBoundsDatetime
        return datetime.min


def _month_bounds(year: int, month: int, months: int) -> Tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    end = (pd.Timestamp(start) + pd.DateOffset(months=months)).to_pydatetime() - _ONE_TICK
    return start, end


def resolve_window(timeframe: Optional[Timeframe], now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """
    Turn a timeframe into an inclusive (start, end) window.

    Returns None when the timeframe is absent or its phrase is not part of
    the grammar; callers treat that as "no time constraint".
    """
    if timeframe is None:
        return None

    if timeframe.is_range:
        return (timeframe.start or datetime.min, timeframe.end or datetime.max)

    if not timeframe.relative:
        return None

    rel = _squash(timeframe.relative)
    today = _day_start(now)

    if "today" in rel:
        return today, today + timedelta(days=1) - _ONE_TICK
    if "yesterday" in rel:
        start = today - timedelta(days=1)
        return start, today - _ONE_TICK
    if "this week" in rel:
        start = today - timedelta(days=(now.weekday() + 1) % 7)
        return start, start + timedelta(days=7) - _ONE_TICK
    if "this month" in rel:
        return _month_bounds(now.year, now.month, 1)
    if "this year" in rel:
        return _month_bounds(now.year, 1, 12)

    m = _WINDOW_RE.search(rel)
    if m:
        amount = int(m.group(1) or m.group(2) or 1)
        return _shift_back(now, amount, m.group(3)), now

    m = QUARTER_RE.search(rel)
    if m:
        quarter, year = int(m.group(1)), int(m.group(2))
        return _month_bounds(year, (quarter - 1) * 3 + 1, 3)

    m = _YEAR_RE.search(rel)
    if m:
        return _month_bounds(int(m.group(1)), 1, 12)

    return None
