from .aggregator import Aggregator, StudyState
from .goal_progress import GoalProgress, progress
from .timer_engine import TimerEngine, TimerStatus

__all__ = [
    "Aggregator", "StudyState", "GoalProgress", "progress",
    "TimerEngine", "TimerStatus",
]
