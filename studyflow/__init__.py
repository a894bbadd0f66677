"""StudyFlow — offline study tracker: subjects, tasks, timed sessions and a goal."""

__version__ = "1.0.0"
