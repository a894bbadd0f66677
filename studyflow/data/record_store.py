"""
Record Store interface — the boundary between StudyFlow and durable storage.

The Aggregator depends only on this abstract class. Any keyed-record engine
(SQLite here, something else tomorrow) can sit behind it as long as it keeps
the contract below. There are no foreign keys at this level: referential
integrity is the Aggregator's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from studyflow.errors import ValidationError

Record = Dict[str, Any]

SUBJECTS = "subjects"
TASKS = "tasks"
SESSIONS = "sessions"
SETTINGS = "settings"

# collection -> (key field, secondary index fields)
COLLECTIONS: Dict[str, tuple] = {
    SUBJECTS: ("id", ()),
    TASKS: ("id", ("subjectId",)),
    SESSIONS: ("id", ("subjectId", "date")),
    SETTINGS: ("key", ()),
}


def key_field(collection: str) -> str:
    """Name of the key attribute for a collection."""
    try:
        return COLLECTIONS[collection][0]
    except KeyError:
        raise ValidationError(f"Unknown collection '{collection}'.") from None


def check_index(collection: str, field: str) -> None:
    key_field(collection)
    if field not in COLLECTIONS[collection][1]:
        raise ValidationError(f"Collection '{collection}' has no index on '{field}'.")


class RecordStore(ABC):
    """
    Generic durable keyed collections.

    Every method is a coroutine and each call is atomic on its own. Nothing
    spans calls: multi-step work (cascade delete) has to be sequenced by the
    caller.
    """

    @abstractmethod
    async def put(self, collection: str, record: Record) -> str:
        """Insert or fully replace the record at its key. Returns the key."""
        ...

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Record]:
        """Return the record, or None if absent."""
        ...

    @abstractmethod
    async def get_all(self, collection: str) -> List[Record]:
        """Every record in the collection, order unspecified."""
        ...

    @abstractmethod
    async def get_all_by_index(
        self, collection: str, field: str, value: Any
    ) -> List[Record]:
        """Every record whose indexed `field` equals `value`."""
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> None:
        """Remove the record. A missing key is not an error."""
        ...

    async def close(self) -> None:
        """Release resources. Default: nothing to release."""
        return None
