"""
StudyFlowApp — wires the store, the Aggregator and the Timer Engine.

One instance per running process. The presentation layer holds on to it and
talks to `aggregator` and `timer`; nothing else is global.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from studyflow.config import Settings, get_settings
from studyflow.data.record_store import RecordStore
from studyflow.data.repository import SqliteRecordStore
from studyflow.services.aggregator import Aggregator
from studyflow.services.timer_engine import TimerEngine

logger = logging.getLogger(__name__)


class StudyFlowApp:
    """Application root: owns the record store and the two core services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[RecordStore] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.aggregator: Optional[Aggregator] = None
        self.timer: Optional[TimerEngine] = None

    async def init(self) -> "StudyFlowApp":
        """
        Open the store and load data.

        StorageUnavailable from opening the store is the one fatal error; it
        propagates so the caller can report it and stop.
        """
        if self.store is None:
            self.store = await asyncio.to_thread(
                SqliteRecordStore.open, self.settings.db_path
            )

        self.aggregator = Aggregator(self.store)
        await self.aggregator.load_all()

        self.timer = TimerEngine(
            self.aggregator,
            loop=asyncio.get_running_loop(),
            tick_interval=self.settings.tick_interval,
            min_session_seconds=self.settings.min_session_seconds,
        )
        logger.info("StudyFlow initialized.")
        return self

    async def close(self) -> None:
        if self.timer is not None:
            self.timer.reset()
        if self.store is not None:
            await self.store.close()
