from __future__ import annotations

import asyncio

import pytest

from studyflow.data.repository import SqliteRecordStore
from studyflow.services.aggregator import Aggregator

from .fakes import FlakyStore


def _run(coro):
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run(coro)


@pytest.fixture
def store():
    """Fresh in-memory SQLite record store."""
    return SqliteRecordStore.open(":memory:")


@pytest.fixture
def flaky(store):
    return FlakyStore(store)


@pytest.fixture
def agg(flaky):
    aggregator = Aggregator(flaky)
    _run(aggregator.load_all())
    return aggregator


@pytest.fixture
def subject(agg):
    """Aggregator with one subject ready to use."""
    return _run(agg.upsert_subject(None, "Physics", "#ff0000"))
