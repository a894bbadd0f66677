"""Unit tests for the data layer (models, database, record store)."""

import asyncio
import threading
from datetime import date, time

import pytest

from studyflow.data.database import Database
from studyflow.data.models import Goal, Session, Subject, Task, new_id
from studyflow.data.repository import SqliteRecordStore
from studyflow.errors import StorageUnavailable, ValidationError


def _run(coro):
    return asyncio.run(coro)


class TestModels:
    def test_session_record_round_trip(self):
        s = Session(id="s1", subject_id="sub", date=date(2024, 1, 10),
                    start_time=time(9, 0), end_time=time(10, 30), duration=5400)
        rec = s.to_record()
        assert rec == {
            "id": "s1", "subjectId": "sub", "date": "2024-01-10",
            "startTime": "09:00", "endTime": "10:30", "duration": 5400,
        }
        assert Session.from_record(rec) == s

    def test_goal_record_uses_fixed_key(self):
        g = Goal(name="Finals", target_date=date(2024, 6, 1), start_date=date(2024, 1, 1))
        rec = g.to_record()
        assert rec["key"] == "goal"
        assert Goal.from_record(rec) == g

    def test_task_defaults_to_not_completed(self):
        t = Task.from_record({"id": "t1", "subjectId": "s", "description": "Read"})
        assert t.completed is False

    def test_ids_are_unique(self):
        ids = {new_id() for _ in range(2000)}
        assert len(ids) == 2000


class TestRecordStore:
    def test_put_returns_key_and_get_round_trips(self, store: SqliteRecordStore):
        subject = Subject(id="abc", name="Maths", color="#00ff00", created_at=1700000000000)
        key = _run(store.put("subjects", subject.to_record()))
        assert key == "abc"
        assert _run(store.get("subjects", "abc")) == subject.to_record()

    def test_put_replaces_whole_record(self, store):
        _run(store.put("tasks", {"id": "t", "subjectId": "s", "description": "a", "completed": False}))
        _run(store.put("tasks", {"id": "t", "subjectId": "s", "description": "b"}))
        assert _run(store.get("tasks", "t")) == {"id": "t", "subjectId": "s", "description": "b"}
        assert len(_run(store.get_all("tasks"))) == 1

    def test_get_missing_returns_none(self, store):
        assert _run(store.get("subjects", "nope")) is None

    def test_get_all_by_index(self, store):
        _run(store.put("sessions", {"id": "1", "subjectId": "a", "date": "2024-01-01", "duration": 60}))
        _run(store.put("sessions", {"id": "2", "subjectId": "b", "date": "2024-01-01", "duration": 60}))
        _run(store.put("sessions", {"id": "3", "subjectId": "a", "date": "2024-01-02", "duration": 60}))

        by_subject = _run(store.get_all_by_index("sessions", "subjectId", "a"))
        assert sorted(r["id"] for r in by_subject) == ["1", "3"]

        by_date = _run(store.get_all_by_index("sessions", "date", date(2024, 1, 1)))
        assert sorted(r["id"] for r in by_date) == ["1", "2"]

    def test_index_tracks_replacement(self, store):
        _run(store.put("tasks", {"id": "t", "subjectId": "a"}))
        _run(store.put("tasks", {"id": "t", "subjectId": "b"}))
        assert _run(store.get_all_by_index("tasks", "subjectId", "a")) == []

    def test_delete_missing_key_is_not_an_error(self, store):
        _run(store.delete("subjects", "ghost"))

    def test_settings_keyed_by_key(self, store):
        key = _run(store.put("settings", {"key": "goal", "name": "x"}))
        assert key == "goal"

    def test_unknown_collection_rejected(self, store):
        with pytest.raises(ValidationError):
            _run(store.get_all("notes"))

    def test_undeclared_index_rejected(self, store):
        with pytest.raises(ValidationError, match="no index"):
            _run(store.get_all_by_index("subjects", "color", "#fff"))

    def test_record_without_key_rejected(self, store):
        with pytest.raises(ValidationError):
            _run(store.put("subjects", {"name": "no id"}))

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "nested" / "study.db"
        first = SqliteRecordStore.open(path)
        _run(first.put("subjects", {"id": "x", "name": "Art"}))
        _run(first.close())

        second = SqliteRecordStore.open(path)
        assert _run(second.get("subjects", "x")) == {"id": "x", "name": "Art"}

    def test_closed_store_is_unavailable(self, store):
        _run(store.close())
        with pytest.raises(StorageUnavailable):
            _run(store.get_all("subjects"))

    def test_close_waits_off_the_event_loop(self, store):
        async def _test():
            store._lock.acquire()
            threading.Timer(0.3, store._lock.release).start()
            closing = asyncio.create_task(store.close())
            await asyncio.sleep(0.05)
            # the loop keeps running while close waits for the lock
            assert not closing.done()
            await closing

        _run(_test())
        assert store.db.conn is None


class TestDatabase:
    def test_unopenable_path_raises_storage_unavailable(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageUnavailable):
            Database(blocker / "db.sqlite").connect()

    def test_connect_is_idempotent(self):
        db = Database()
        assert db.connect() is db.connect()
        db.close()
        assert db.conn is None
