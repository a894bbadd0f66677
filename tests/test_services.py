"""Unit tests for the Aggregator (write-through CRUD and derived queries)."""

import asyncio
from datetime import date, datetime

import pytest

from studyflow.data.models import Subject
from studyflow.errors import NotFound, StorageUnavailable, ValidationError
from studyflow.services.aggregator import Aggregator


def _run(coro):
    return asyncio.run(coro)


def _add_session(agg, subject_id, day, start, end):
    return _run(agg.upsert_session(None, subject_id, day, start, end))


class TestSubjects:
    def test_create_subject_round_trips_through_store(self, agg: Aggregator, store):
        subject = _run(agg.upsert_subject(None, "  Chemistry ", "#00ff00"))
        assert subject.name == "Chemistry"
        assert subject.created_at > 0

        rec = _run(store.get("subjects", subject.id))
        assert Subject.from_record(rec) == subject
        assert [Subject.from_record(r) for r in _run(store.get_all("subjects"))] == [subject]
        assert agg.get_subject(subject.id) == subject

    def test_edit_keeps_created_at(self, agg, subject):
        edited = _run(agg.upsert_subject(subject.id, "Physics II", "#0000ff"))
        assert edited.id == subject.id
        assert edited.created_at == subject.created_at
        assert agg.get_subject(subject.id).name == "Physics II"

    def test_empty_name_rejected_without_write(self, agg, flaky):
        flaky.calls.clear()
        with pytest.raises(ValidationError):
            _run(agg.upsert_subject(None, "   ", "#000000"))
        assert flaky.calls == []

    def test_edit_unknown_subject_is_not_found(self, agg):
        with pytest.raises(NotFound):
            _run(agg.upsert_subject("missing", "Name", "#000000"))

    def test_delete_cascades_to_tasks_and_sessions(self, agg, subject, store):
        other = _run(agg.upsert_subject(None, "Biology", "#00ff00"))
        for i in range(3):
            _run(agg.upsert_task(None, subject.id, f"task {i}"))
            _add_session(agg, subject.id, "2024-01-0%d" % (i + 1), "09:00", "10:00")
        _run(agg.upsert_task(None, other.id, "keep me"))
        _add_session(agg, other.id, "2024-01-01", "11:00", "12:00")

        _run(agg.delete_subject(subject.id))

        assert _run(store.get_all_by_index("tasks", "subjectId", subject.id)) == []
        assert _run(store.get_all_by_index("sessions", "subjectId", subject.id)) == []
        assert _run(store.get("subjects", subject.id)) is None
        assert agg.get_subject(subject.id) is None
        assert len(agg.state.tasks) == 1
        assert len(agg.state.sessions) == 1

    def test_cascade_deletes_children_before_parent(self, agg, subject, flaky):
        _run(agg.upsert_task(None, subject.id, "t"))
        flaky.calls.clear()
        _run(agg.delete_subject(subject.id))
        deletes = [i for i, c in enumerate(flaky.calls) if c == "delete"]
        lookups = [i for i, c in enumerate(flaky.calls) if c == "get_all_by_index"]
        assert len(deletes) == 2
        assert len(lookups) == 2
        # parent goes last, after both child lookups
        assert max(lookups) < deletes[-1]

    def test_delete_missing_subject_is_noop(self, agg):
        _run(agg.delete_subject("ghost"))


class TestTasks:
    def test_create_and_toggle(self, agg, subject, store):
        task = _run(agg.upsert_task(None, subject.id, "Read chapter 3"))
        assert task.completed is False

        toggled = _run(agg.toggle_task(task.id))
        assert toggled.completed is True
        assert _run(store.get("tasks", task.id))["completed"] is True
        assert agg.task_counts() == (1, 1)

        _run(agg.toggle_task(task.id))
        assert agg.task_counts() == (0, 1)

    def test_edit_preserves_completed_and_subject(self, agg, subject):
        task = _run(agg.upsert_task(None, subject.id, "draft"))
        _run(agg.toggle_task(task.id))
        edited = _run(agg.upsert_task(task.id, subject.id, "final"))
        assert edited.completed is True
        assert edited.created_at == task.created_at

    def test_cannot_reassign_subject(self, agg, subject):
        other = _run(agg.upsert_subject(None, "Other", "#111111"))
        task = _run(agg.upsert_task(None, subject.id, "x"))
        with pytest.raises(ValidationError):
            _run(agg.upsert_task(task.id, other.id, "x"))

    def test_task_needs_known_subject(self, agg):
        with pytest.raises(ValidationError):
            _run(agg.upsert_task(None, "nope", "x"))

    def test_toggle_deleted_task_is_validation_error(self, agg, subject):
        task = _run(agg.upsert_task(None, subject.id, "x"))
        _run(agg.delete_task(task.id))
        with pytest.raises(ValidationError):
            _run(agg.toggle_task(task.id))
        # deleting again is fine
        _run(agg.delete_task(task.id))


class TestSessions:
    def test_duration_from_clock_times(self, agg, subject):
        session = _add_session(agg, subject.id, "2024-01-10", "09:15", "10:45")
        assert session.duration == 5400

    @pytest.mark.parametrize("start,end", [("10:00", "10:00"), ("11:00", "10:00")])
    def test_non_positive_duration_rejected(self, agg, subject, store, start, end):
        with pytest.raises(ValidationError, match="after start"):
            _add_session(agg, subject.id, "2024-01-10", start, end)
        assert _run(store.get_all("sessions")) == []
        assert agg.state.sessions == []

    def test_missing_field_rejected(self, agg, subject):
        with pytest.raises(ValidationError):
            _add_session(agg, subject.id, "", "09:00", "10:00")

    def test_explicit_duration_is_authoritative(self, agg, subject):
        session = _run(agg.upsert_session(None, subject.id, "2024-01-10", "23:59", "00:01", duration=125))
        assert session.duration == 125

    def test_edit_rewrites_all_fields(self, agg, subject):
        s = _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        edited = _run(agg.upsert_session(s.id, subject.id, "2024-01-11", "14:00", "14:30"))
        assert edited.id == s.id
        assert len(agg.state.sessions) == 1
        assert agg.state.sessions[0].date == date(2024, 1, 11)
        assert agg.state.sessions[0].duration == 1800

    def test_edit_unknown_session_is_not_found(self, agg, subject):
        with pytest.raises(NotFound):
            _run(agg.upsert_session("gone", subject.id, "2024-01-10", "09:00", "10:00"))

    def test_totals_are_idempotent_and_track_writes(self, agg, subject):
        _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        first = agg.total_time_for_subject(subject.id)
        assert agg.total_time_for_subject(subject.id) == first

        _add_session(agg, subject.id, "2024-01-11", "09:00", "09:05")
        assert agg.total_time_for_subject(subject.id) == first + 300
        assert agg.total_time_for_date("2024-01-11") == 300

    def test_subject_summary(self, agg, subject):
        _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        t = _run(agg.upsert_task(None, subject.id, "a"))
        _run(agg.upsert_task(None, subject.id, "b"))
        _run(agg.toggle_task(t.id))
        assert agg.subject_summary(subject.id) == {
            "total_seconds": 3600, "session_count": 1,
            "tasks_completed": 1, "tasks_total": 2,
        }

    def test_history_newest_first(self, agg, subject):
        _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        _add_session(agg, subject.id, "2024-01-12", "08:00", "09:00")
        _add_session(agg, subject.id, "2024-01-12", "18:00", "19:00")
        _add_session(agg, subject.id, "2023-11-01", "18:00", "19:00")

        history = agg.session_history("week", today=date(2024, 1, 12))
        assert [(s.date.day, s.start_time.hour) for s in history] == [(12, 18), (12, 8), (10, 9)]
        assert len(agg.session_history("all", today=date(2024, 1, 12))) == 4
        assert len(agg.session_history("today", today=date(2024, 1, 12))) == 2

    def test_period_stats(self, agg, subject):
        other = _run(agg.upsert_subject(None, "Maths", "#123456"))
        _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        _add_session(agg, other.id, "2024-01-11", "09:00", "11:00")
        _add_session(agg, other.id, "2023-12-01", "09:00", "11:00")

        stats = agg.period_stats("week", today=date(2024, 1, 12))
        assert stats["session_count"] == 2
        assert stats["total_seconds"] == 3 * 3600
        assert stats["breakdown"] == [(other.id, 7200), (subject.id, 3600)]
        assert len(stats["daily_series"]) == 7
        assert stats["best_day"] == date(2024, 1, 11)


class TestGoal:
    def test_goal_defaults_start_to_today(self, agg):
        goal = _run(agg.upsert_goal("Finals", "2024-06-01", today=date(2024, 1, 1)))
        assert goal.start_date == date(2024, 1, 1)
        assert agg.state.goal == goal

    def test_goal_requires_name_and_target(self, agg):
        with pytest.raises(ValidationError):
            _run(agg.upsert_goal("", "2024-06-01"))
        with pytest.raises(ValidationError):
            _run(agg.upsert_goal("Finals", None))

    def test_reset_goal(self, agg):
        _run(agg.upsert_goal("Finals", "2024-06-01", "2024-01-01"))
        _run(agg.reset_goal())
        assert agg.state.goal is None
        assert agg.goal_progress() is None

    def test_goal_progress(self, agg):
        _run(agg.upsert_goal("Finals", "2024-01-31", "2024-01-01"))
        gp = agg.goal_progress(datetime(2024, 1, 16))
        assert gp.days_remaining == 15
        assert gp.percent_elapsed == pytest.approx(50.0)


class TestFailures:
    def test_failed_write_leaves_snapshot_untouched(self, agg, subject, flaky):
        before = list(agg.state.subjects)
        flaky.down = True
        with pytest.raises(StorageUnavailable):
            _run(agg.upsert_subject(None, "Biology", "#00ff00"))
        assert agg.state.subjects == before

    def test_load_failure_keeps_stale_snapshot(self, agg, subject, flaky):
        flaky.down = True
        assert _run(agg.load_all()) is False
        assert agg.get_subject(subject.id) == subject

    def test_partial_load_does_not_swap_snapshot(self, agg, subject, flaky):
        flaky.fail_after = 2  # subjects + tasks succeed, sessions fails
        assert _run(agg.load_all()) is False
        assert agg.state.subjects == [subject]


class TestListeners:
    def test_mutations_notify(self, agg):
        events = []
        agg.add_listener(events.append)
        s = _run(agg.upsert_subject(None, "A", "#000000"))
        _run(agg.upsert_task(None, s.id, "t"))
        _run(agg.upsert_goal("G", "2030-01-01"))
        assert events == ["subjects", "tasks", "goal"]

        agg.remove_listener(events.append)
        _run(agg.reset_goal())
        assert events == ["subjects", "tasks", "goal"]

    def test_listener_error_does_not_break_mutation(self, agg):
        def boom(_event):
            raise RuntimeError("render failed")

        agg.add_listener(boom)
        s = _run(agg.upsert_subject(None, "A", "#000000"))
        assert agg.get_subject(s.id) is not None

    def test_failed_mutation_does_not_notify(self, agg, flaky):
        events = []
        agg.add_listener(events.append)
        flaky.down = True
        with pytest.raises(StorageUnavailable):
            _run(agg.upsert_subject(None, "A", "#000000"))
        assert events == []


class TestStaleSnapshot:
    """A failed reload after a delete must not let edits bring records back."""

    @staticmethod
    def _recover(flaky):
        flaky.fail_after = None
        flaky.down = False

    def test_edit_of_deleted_subject_is_not_found(self, agg, subject, flaky, store):
        flaky.fail_after = 3  # two child lookups + delete, then reload fails
        _run(agg.delete_subject(subject.id))
        self._recover(flaky)
        assert agg.get_subject(subject.id) is not None  # stale

        with pytest.raises(NotFound):
            _run(agg.upsert_subject(subject.id, "Renamed", "#000000"))
        assert _run(store.get("subjects", subject.id)) is None

    def test_new_session_for_deleted_subject_rejected(self, agg, subject, flaky, store):
        flaky.fail_after = 3
        _run(agg.delete_subject(subject.id))
        self._recover(flaky)

        with pytest.raises(ValidationError):
            _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        with pytest.raises(ValidationError):
            _run(agg.upsert_task(None, subject.id, "orphan"))
        assert _run(store.get_all("sessions")) == []
        assert _run(store.get_all("tasks")) == []

    def test_edit_of_deleted_task_is_not_found(self, agg, subject, flaky, store):
        task = _run(agg.upsert_task(None, subject.id, "x"))
        flaky.fail_after = 1  # delete succeeds, reload fails
        _run(agg.delete_task(task.id))
        self._recover(flaky)

        with pytest.raises(NotFound):
            _run(agg.upsert_task(task.id, subject.id, "y"))
        assert _run(store.get("tasks", task.id)) is None

    def test_edit_of_deleted_session_is_not_found(self, agg, subject, flaky, store):
        session = _add_session(agg, subject.id, "2024-01-10", "09:00", "10:00")
        flaky.fail_after = 1
        _run(agg.delete_session(session.id))
        self._recover(flaky)
        assert len(agg.state.sessions) == 1  # stale

        with pytest.raises(NotFound):
            _run(agg.upsert_session(session.id, subject.id, "2024-01-10", "09:00", "11:00"))
        assert _run(store.get("sessions", session.id)) is None
