"""Goal progress: days/weeks left and how much of the run-up has elapsed."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class GoalProgress:
    days_remaining: int
    weeks_remaining: int
    percent_elapsed: float


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


def progress(start: date, target: date, now: datetime) -> GoalProgress:
    """
    Progress from `start` towards `target` as seen at `now`.

    Dates count from local midnight. A target on or before the start date is
    reported as fully elapsed.
    """
    start_at = _midnight(start)
    target_at = _midnight(target)

    total_span = (target_at - start_at).total_seconds()
    elapsed = (now - start_at).total_seconds()
    remaining = (target_at - now).total_seconds()

    days_remaining = max(0, math.ceil(remaining / SECONDS_PER_DAY))
    weeks_remaining = math.ceil(days_remaining / 7)

    if total_span <= 0:
        percent = 100.0
    else:
        percent = min(100.0, max(0.0, elapsed / total_span * 100))

    return GoalProgress(
        days_remaining=days_remaining,
        weeks_remaining=weeks_remaining,
        percent_elapsed=percent,
    )
