"""
Aggregator — the in-memory study state and every query the views need.

Owns one StudyState snapshot (subjects, tasks, sessions, goal) loaded from
the record store. Mutations validate, write through, reload, then tell
listeners that data changed. Reads never touch the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from studyflow.data.models import (
    GOAL_KEY,
    Goal,
    Session,
    Subject,
    Task,
    new_id,
    now_ms,
    parse_clock,
    parse_date,
)
from studyflow.data.record_store import SESSIONS, SETTINGS, SUBJECTS, TASKS, RecordStore
from studyflow.errors import NotFound, StorageUnavailable, ValidationError
from studyflow.services import analytics
from studyflow.services.goal_progress import GoalProgress, progress

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]

DateLike = Union[date, str]
TimeLike = Union[time, str]


@dataclass
class StudyState:
    """Last successfully loaded snapshot of the store."""
    subjects: List[Subject] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    sessions: List[Session] = field(default_factory=list)
    goal: Optional[Goal] = None


def _session_seconds(day: date, start: time, end: time) -> int:
    delta = datetime.combine(day, end) - datetime.combine(day, start)
    return int(delta.total_seconds())


class Aggregator:
    """
    Study data holder and derived-query engine.

    Only one mutation is expected in flight at a time; the caller serializes
    user actions. Each store call is atomic, multi-step operations are not.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.state = StudyState()
        self._listeners: List[Listener] = []

    # ── Change notification ─────────────────────────────────────────────────

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, event: str) -> None:
        for cb in list(self._listeners):
            try:
                cb(event)
            except Exception:
                logger.exception("Change listener failed for event '%s'", event)

    async def _commit(self, event: str) -> None:
        await self.load_all()
        self._notify(event)

    # ── Loading ─────────────────────────────────────────────────────────────

    async def load_all(self) -> bool:
        """
        Refresh the snapshot from the store.

        Returns False (and keeps the previous snapshot) when the store is
        unreachable; the failure is logged, never raised.
        """
        try:
            subjects = await self.store.get_all(SUBJECTS)
            tasks = await self.store.get_all(TASKS)
            sessions = await self.store.get_all(SESSIONS)
            goal = await self.store.get(SETTINGS, GOAL_KEY)
        except StorageUnavailable as exc:
            logger.warning("Failed to load data, keeping last snapshot: %s", exc)
            return False

        subject_list = sorted(
            (Subject.from_record(r) for r in subjects), key=lambda s: (s.created_at, s.id)
        )
        task_list = sorted(
            (Task.from_record(r) for r in tasks), key=lambda t: (t.created_at, t.id)
        )
        self.state = StudyState(
            subjects=subject_list,
            tasks=task_list,
            sessions=[Session.from_record(r) for r in sessions],
            goal=Goal.from_record(goal) if goal else None,
        )
        logger.debug(
            "Data loaded: %d subjects, %d tasks, %d sessions",
            len(self.state.subjects), len(self.state.tasks), len(self.state.sessions),
        )
        return True

    # ── Subjects ────────────────────────────────────────────────────────────

    async def upsert_subject(
        self, subject_id: Optional[str], name: str, color: str
    ) -> Subject:
        """Create (subject_id=None) or edit a subject. createdAt survives edits."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a subject name.")

        if subject_id is None:
            subject = Subject(id=new_id(), name=name, color=color, created_at=now_ms())
        else:
            rec = await self.store.get(SUBJECTS, subject_id)
            if rec is None:
                raise NotFound("Subject", subject_id)
            existing = Subject.from_record(rec)
            subject = Subject(
                id=existing.id, name=name, color=color, created_at=existing.created_at
            )

        await self.store.put(SUBJECTS, subject.to_record())
        logger.info("Subject %s saved (%s)", subject.id, subject.name)
        await self._commit("subjects")
        return subject

    async def delete_subject(self, subject_id: str) -> None:
        """Delete a subject with all its tasks and sessions, children first."""
        tasks = await self.store.get_all_by_index(TASKS, "subjectId", subject_id)
        for rec in tasks:
            await self.store.delete(TASKS, rec["id"])

        sessions = await self.store.get_all_by_index(SESSIONS, "subjectId", subject_id)
        for rec in sessions:
            await self.store.delete(SESSIONS, rec["id"])

        await self.store.delete(SUBJECTS, subject_id)
        logger.info(
            "Subject %s deleted with %d tasks and %d sessions",
            subject_id, len(tasks), len(sessions),
        )
        await self._commit("subjects")

    # ── Tasks ───────────────────────────────────────────────────────────────

    async def upsert_task(
        self, task_id: Optional[str], subject_id: str, description: str
    ) -> Task:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Please enter a task description.")

        if task_id is None:
            await self._require_subject(subject_id)
            task = Task(
                id=new_id(), subject_id=subject_id, description=description,
                completed=False, created_at=now_ms(),
            )
        else:
            rec = await self.store.get(TASKS, task_id)
            if rec is None:
                raise NotFound("Task", task_id)
            existing = Task.from_record(rec)
            if existing.subject_id != subject_id:
                raise ValidationError("A task cannot move to another subject.")
            task = Task(
                id=existing.id, subject_id=existing.subject_id,
                description=description, completed=existing.completed,
                created_at=existing.created_at,
            )

        await self.store.put(TASKS, task.to_record())
        await self._commit("tasks")
        return task

    async def toggle_task(self, task_id: str) -> Task:
        """Flip `completed` and write the whole record back."""
        rec = await self.store.get(TASKS, task_id)
        if rec is None:
            raise NotFound("Task", task_id)
        task = Task.from_record(rec)
        task.completed = not task.completed
        await self.store.put(TASKS, task.to_record())
        await self._commit("tasks")
        return task

    async def delete_task(self, task_id: str) -> None:
        await self.store.delete(TASKS, task_id)
        await self._commit("tasks")

    # ── Sessions ────────────────────────────────────────────────────────────

    async def upsert_session(
        self,
        session_id: Optional[str],
        subject_id: str,
        day: DateLike,
        start_time: TimeLike,
        end_time: TimeLike,
        duration: Optional[int] = None,
    ) -> Session:
        """
        Create or rewrite a session.

        Without `duration` the length is end - start on `day`. The timer
        passes `duration` explicitly because its clock times are rounded to
        the minute while the elapsed seconds are exact.
        """
        if not subject_id or day in (None, "") or start_time in (None, "") or end_time in (None, ""):
            raise ValidationError("Please fill all fields.")
        try:
            day = parse_date(day)
            start = parse_clock(start_time)
            end = parse_clock(end_time)
        except ValueError as exc:
            raise ValidationError(f"Invalid date or time: {exc}") from exc

        seconds = _session_seconds(day, start, end) if duration is None else int(duration)
        if seconds <= 0:
            raise ValidationError("End time must be after start time.")

        await self._require_subject(subject_id)

        if session_id is None:
            session_id = new_id()
        elif await self.store.get(SESSIONS, session_id) is None:
            raise NotFound("Session", session_id)

        session = Session(
            id=session_id, subject_id=subject_id, date=day,
            start_time=start, end_time=end, duration=seconds,
        )
        await self.store.put(SESSIONS, session.to_record())
        logger.info(
            "Session %s saved: subject=%s date=%s duration=%ds",
            session.id, subject_id, day.isoformat(), seconds,
        )
        await self._commit("sessions")
        return session

    async def delete_session(self, session_id: str) -> None:
        await self.store.delete(SESSIONS, session_id)
        await self._commit("sessions")

    # ── Goal ────────────────────────────────────────────────────────────────

    async def upsert_goal(
        self,
        name: str,
        target_date: Optional[DateLike],
        start_date: Optional[DateLike] = None,
        today: Optional[date] = None,
    ) -> Goal:
        name = (name or "").strip()
        if not name or not target_date:
            raise ValidationError("Please enter goal name and target date.")
        try:
            target = parse_date(target_date)
            start = parse_date(start_date) if start_date else (today or date.today())
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {exc}") from exc

        goal = Goal(name=name, target_date=target, start_date=start)
        await self.store.put(SETTINGS, goal.to_record())
        logger.info("Goal saved: %s (%s -> %s)", name, start, target)
        await self._commit("goal")
        return goal

    async def reset_goal(self) -> None:
        await self.store.delete(SETTINGS, GOAL_KEY)
        logger.info("Goal reset.")
        await self._commit("goal")

    # ── Lookups ─────────────────────────────────────────────────────────────

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self.state.subjects if s.id == subject_id), None)

    def tasks_for_subject(self, subject_id: str) -> List[Task]:
        return [t for t in self.state.tasks if t.subject_id == subject_id]

    def sessions_for_subject(self, subject_id: str) -> List[Session]:
        return [s for s in self.state.sessions if s.subject_id == subject_id]

    def sessions_for_date(self, day: DateLike) -> List[Session]:
        day = parse_date(day)
        return [s for s in self.state.sessions if s.date == day]

    async def _require_subject(self, subject_id: str) -> None:
        # The store, not the snapshot, decides: the snapshot may predate a delete.
        if await self.store.get(SUBJECTS, subject_id) is None:
            raise ValidationError(f"Unknown subject '{subject_id}'.")

    # ── Derived queries ─────────────────────────────────────────────────────

    def total_time_for_subject(self, subject_id: str) -> int:
        return analytics.total_time_for_subject(self.state.sessions, subject_id)

    def total_time_for_date(self, day: DateLike) -> int:
        return analytics.total_time_for_date(self.state.sessions, parse_date(day))

    def streak(self, today: Optional[date] = None) -> int:
        return analytics.streak(self.state.sessions, today or date.today())

    @staticmethod
    def period_breakdown(
        sessions: List[Session], window_start: Optional[date]
    ) -> List[Tuple[str, int]]:
        return analytics.period_breakdown(sessions, window_start)

    @staticmethod
    def daily_series(
        sessions: List[Session], num_days: int, now: Union[date, datetime]
    ) -> List[Tuple[date, int]]:
        return analytics.daily_series(sessions, num_days, now)

    def goal_progress(self, now: Optional[datetime] = None) -> Optional[GoalProgress]:
        """None when there is no goal (the view shows placeholders)."""
        goal = self.state.goal
        if goal is None or goal.target_date is None:
            return None
        now = now or datetime.now()
        start = goal.start_date or now.date()
        return progress(start, goal.target_date, now)

    def subject_summary(self, subject_id: str) -> Dict[str, int]:
        tasks = self.tasks_for_subject(subject_id)
        return {
            "total_seconds": self.total_time_for_subject(subject_id),
            "session_count": len(self.sessions_for_subject(subject_id)),
            "tasks_completed": sum(1 for t in tasks if t.completed),
            "tasks_total": len(tasks),
        }

    def task_counts(self) -> Tuple[int, int]:
        """(completed, total) over every task."""
        done = sum(1 for t in self.state.tasks if t.completed)
        return done, len(self.state.tasks)

    def session_history(self, period: str = "all", today: Optional[date] = None) -> List[Session]:
        today = today or date.today()
        start = analytics.window_start(period, today)
        return analytics.sort_newest_first(analytics.filter_since(self.state.sessions, start))

    def period_stats(self, period: str = "week", today: Optional[date] = None) -> Dict[str, Any]:
        """Everything the statistics view shows for one period."""
        today = today or date.today()
        sessions = analytics.filter_since(
            self.state.sessions, analytics.window_start(period, today)
        )
        series = analytics.daily_series(sessions, analytics.chart_days(period), today)
        stats: Dict[str, Any] = {
            "period": period,
            "session_count": len(sessions),
            "total_seconds": sum(s.duration for s in sessions),
            "breakdown": analytics.period_breakdown(sessions, None),
            "daily_series": series,
        }
        stats.update(analytics.series_stats(series))
        return stats

    def month_totals(self, year: int, month: int) -> Dict[date, int]:
        return analytics.month_totals(self.state.sessions, year, month)

    def dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        today = now.date()
        done, total = self.task_counts()
        return {
            "date": today,
            "today_seconds": self.total_time_for_date(today),
            "streak": self.streak(today),
            "tasks_completed": done,
            "tasks_total": total,
            "goal": self.state.goal,
            "goal_progress": self.goal_progress(now),
            "subjects": [
                (s, self.total_time_for_subject(s.id)) for s in self.state.subjects
            ],
        }


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Holds the loaded study data and answers every question the UI asks
#   about it (totals, streak, breakdowns, goal progress).
#
# Data flow:
#   UI action → Aggregator.upsert_*/delete_* → validate → store.put/delete
#   → load_all() → listeners("sessions") → UI re-renders from queries.
#
# Interviewer-friendly talking points:
#   1. No optimistic updates: if the write raises StorageUnavailable the
#      snapshot is untouched, so the screen never shows data that isn't
#      on disk.
#   2. Cascade delete goes children → parent and finds children through
#      the store's subjectId index, not the snapshot. A crash mid-way can
#      leave orphans but never a subject pointing at missing rows.
#   3. Reload-after-write is simple and cheap for a single user's data and
#      guarantees read-after-write consistency.
