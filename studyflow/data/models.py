"""
Data models for StudyFlow.

These are plain dataclasses that mirror the records kept in the store. The
store itself only ever sees plain mappings (camelCase keys, ISO strings), so
every model knows how to turn itself into a record and back.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from datetime import date, time as dtime
from typing import Any, Dict, Optional

GOAL_KEY = "goal"

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, rem = divmod(n, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def new_id() -> str:
    """Opaque record id: base-36 millisecond timestamp + random suffix."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36, k=11))
    return stamp + suffix


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_date(value: Any) -> date:
    """Accept a date or a 'YYYY-MM-DD' string."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_clock(value: Any) -> dtime:
    """Accept a time or an 'HH:MM' / 'HH:MM:SS' string."""
    if isinstance(value, dtime):
        return value
    return dtime.fromisoformat(str(value))


def format_clock_hm(value: dtime) -> str:
    return value.strftime("%H:%M")


@dataclass
class Subject:
    """A topic of study (e.g. 'Physics')."""
    id: str = ""
    name: str = ""
    color: str = "#4f46e5"
    created_at: int = 0  # epoch ms, set once

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Subject":
        return cls(
            id=rec["id"],
            name=rec.get("name", ""),
            color=rec.get("color", "#4f46e5"),
            created_at=int(rec.get("createdAt") or 0),
        )


@dataclass
class Task:
    """A to-do item scoped to one subject."""
    id: str = ""
    subject_id: str = ""
    description: str = ""
    completed: bool = False
    created_at: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subjectId": self.subject_id,
            "description": self.description,
            "completed": self.completed,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Task":
        return cls(
            id=rec["id"],
            subject_id=rec.get("subjectId", ""),
            description=rec.get("description", ""),
            completed=bool(rec.get("completed", False)),
            created_at=int(rec.get("createdAt") or 0),
        )


@dataclass
class Session:
    """
    A finished block of study time.

    duration (seconds) is the source of truth for every total. For manual
    entries it equals end_time - start_time on `date`; for timer sessions the
    clock times are only wall-clock snapshots.
    """
    id: str = ""
    subject_id: str = ""
    date: Optional[date] = None
    start_time: Optional[dtime] = None
    end_time: Optional[dtime] = None
    duration: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subjectId": self.subject_id,
            "date": self.date.isoformat() if self.date else None,
            "startTime": format_clock_hm(self.start_time) if self.start_time else None,
            "endTime": format_clock_hm(self.end_time) if self.end_time else None,
            "duration": self.duration,
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Session":
        return cls(
            id=rec["id"],
            subject_id=rec.get("subjectId", ""),
            date=parse_date(rec["date"]) if rec.get("date") else None,
            start_time=parse_clock(rec["startTime"]) if rec.get("startTime") else None,
            end_time=parse_clock(rec["endTime"]) if rec.get("endTime") else None,
            duration=int(rec.get("duration") or 0),
        )


@dataclass
class Goal:
    """The single target-date goal (stored under settings/'goal')."""
    name: str = ""
    target_date: Optional[date] = None
    start_date: Optional[date] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "key": GOAL_KEY,
            "name": self.name,
            "targetDate": self.target_date.isoformat() if self.target_date else None,
            "startDate": self.start_date.isoformat() if self.start_date else None,
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Goal":
        return cls(
            name=rec.get("name", ""),
            target_date=parse_date(rec["targetDate"]) if rec.get("targetDate") else None,
            start_date=parse_date(rec["startDate"]) if rec.get("startDate") else None,
        )


@dataclass
class TimerState:
    """Process-local stopwatch state. Never persisted."""
    subject_id: Optional[str] = None
    started_at_ms: Optional[int] = None
    elapsed_seconds: int = 0
    is_running: bool = False


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Defines the "shape" of every object StudyFlow keeps: Subject, Task,
#   Session, Goal, plus the in-memory TimerState.
#
# Key decisions:
#   - Records on disk use camelCase keys and ISO strings so any key/value
#     store can hold them. Models use real date/time objects so the
#     analytics never parse strings.
#   - Ids are "timestamp + random" strings. Deleted ids are never reused,
#     which matters because cascade deletes can leave short-lived orphans.
#
# Interviewer-friendly talking points:
#   1. Session.duration is authoritative. Start/end times are for display;
#      a timer session crossing a minute boundary still stores the exact
#      number of seconds studied.
#   2. TimerState is deliberately NOT a stored record: a process restart
#      starts a fresh stopwatch.
