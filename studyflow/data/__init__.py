from .database import Database
from .models import Goal, Session, Subject, Task, TimerState
from .record_store import RecordStore
from .repository import SqliteRecordStore

__all__ = [
    "Database", "Goal", "Session", "Subject", "Task", "TimerState",
    "RecordStore", "SqliteRecordStore",
]
