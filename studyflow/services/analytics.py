"""
Analytics — every number on the dashboard, derived from the raw session log.

All functions here are pure: they take sessions (and a "today") and return
values. Nothing reads the clock or the store, so the same inputs always give
the same answer and every function is safe to call on each render.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from studyflow.data.models import Session

PERIODS = ("today", "week", "month", "all")
CHART_DAYS = {"week": 7, "month": 30, "all": 90}


# ── Totals ──────────────────────────────────────────────────────────────────

def total_time_for_subject(sessions: Iterable[Session], subject_id: str) -> int:
    return sum(s.duration for s in sessions if s.subject_id == subject_id)


def total_time_for_date(sessions: Iterable[Session], day: date) -> int:
    return sum(s.duration for s in sessions if s.date == day)


# ── Streak ──────────────────────────────────────────────────────────────────

def streak(sessions: Iterable[Session], today: date) -> int:
    """
    Consecutive study days ending today (or yesterday).

    A latest study day more than one day before `today` means the streak is
    broken. Otherwise count backwards from today (from yesterday when today
    has no session yet) until the first day with no session.
    """
    days = {s.date for s in sessions if s.date is not None}
    if not days:
        return 0

    latest = max(days)
    if (today - latest).days > 1:
        return 0

    count = 0
    check = today if today in days else today - timedelta(days=1)
    while check in days:
        count += 1
        check -= timedelta(days=1)
    return count


# ── Periods ─────────────────────────────────────────────────────────────────

def _months_back(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def window_start(period: str, today: date) -> Optional[date]:
    """First date included in a period filter. None means no lower bound."""
    if period == "today":
        return today
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        return _months_back(today, 1)
    if period == "all":
        return None
    raise ValueError(f"Unknown period '{period}'. Expected one of {PERIODS}.")


def chart_days(period: str) -> int:
    """How many daily buckets the chart shows for a period."""
    return CHART_DAYS.get(period, 1)


def filter_since(sessions: Iterable[Session], start: Optional[date]) -> List[Session]:
    if start is None:
        return list(sessions)
    return [s for s in sessions if s.date is not None and s.date >= start]


def sort_newest_first(sessions: Iterable[Session]) -> List[Session]:
    """Newest date first; same date ordered by start time, latest first."""
    return sorted(
        sessions,
        key=lambda s: (s.date or date.min, s.start_time or datetime.min.time()),
        reverse=True,
    )


def period_breakdown(
    sessions: Iterable[Session], start: Optional[date]
) -> List[Tuple[str, int]]:
    """
    (subject_id, seconds) pairs for sessions on or after `start`.

    Sorted by total time, largest first. Ties keep the order in which the
    subject was first seen (sorted() is stable).
    """
    totals: Dict[str, int] = {}
    for s in filter_since(sessions, start):
        totals[s.subject_id] = totals.get(s.subject_id, 0) + s.duration
    return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)


def daily_series(
    sessions: Iterable[Session],
    num_days: int,
    now: Union[date, datetime],
) -> List[Tuple[date, int]]:
    """
    Dense per-day totals for the `num_days` days ending at `now` (inclusive).

    Every day in the window gets a bucket, even with no study time.
    """
    if num_days <= 0:
        return []
    end = now.date() if isinstance(now, datetime) else now
    first = end - timedelta(days=num_days - 1)

    buckets = np.zeros(num_days, dtype=np.int64)
    for s in sessions:
        if s.date is None:
            continue
        idx = (s.date - first).days
        if 0 <= idx < num_days:
            buckets[idx] += s.duration

    return [(first + timedelta(days=i), int(v)) for i, v in enumerate(buckets)]


def month_totals(sessions: Iterable[Session], year: int, month: int) -> Dict[date, int]:
    """Study seconds for every day of a calendar month (zero-filled)."""
    days_in_month = calendar.monthrange(year, month)[1]
    last = date(year, month, days_in_month)
    return dict(daily_series(sessions, days_in_month, last))


def series_stats(series: Sequence[Tuple[date, int]]) -> Dict[str, object]:
    """Average and best day over a dense daily series."""
    if not series:
        return {"avg_daily_seconds": 0.0, "best_day": None, "best_day_seconds": 0}
    values = np.array([v for _, v in series], dtype=float)
    best = int(np.argmax(values))
    return {
        "avg_daily_seconds": float(np.mean(values)),
        "best_day": series[best][0] if values[best] > 0 else None,
        "best_day_seconds": int(values[best]),
    }


# ── Formatting ──────────────────────────────────────────────────────────────

def format_duration(seconds: int) -> str:
    """Compact duration: '2h 5m', '12m' or '45s'."""
    h, rem = divmod(int(seconds), 3600)
    m = rem // 60
    if h > 0:
        return f"{h}h {m}m"
    if m > 0:
        return f"{m}m"
    return f"{int(seconds)}s"


def format_clock(seconds: int) -> str:
    """Stopwatch display 'HH:MM:SS'."""
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
