"""
Error taxonomy for StudyFlow.

Every store-facing operation raises one of these so callers can tell a bad
input apart from a broken disk without catching bare exceptions.
"""

from __future__ import annotations


class StudyFlowError(Exception):
    """Base class for all StudyFlow errors."""


class ValidationError(StudyFlowError, ValueError):
    """Input rejected before anything was written."""


class NotFound(ValidationError):
    """An edit or toggle targeted an id that no longer exists."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} '{key}' not found.")
        self.kind = kind
        self.key = key


class StorageUnavailable(StudyFlowError):
    """The durable record store could not be opened or an operation failed."""


class TimerStateError(StudyFlowError, RuntimeError):
    """Timer operation not allowed in the current state."""
