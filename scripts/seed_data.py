"""
Seed Data Generator — creates realistic fake study data for development.

Run: python scripts/seed_data.py [--db PATH] [--days 30]
"""

import argparse
import asyncio
import random
from datetime import date, datetime, timedelta
from pathlib import Path

from studyflow.config import get_settings
from studyflow.data.repository import SqliteRecordStore
from studyflow.services.aggregator import Aggregator


async def seed(db_path: Path, num_days: int = 30) -> None:
    store = SqliteRecordStore.open(db_path)
    agg = Aggregator(store)
    await agg.load_all()

    # ── Subjects & Tasks ────────────────────────────────────────────────
    subjects_tasks = {
        ("Physics", "#ef4444"): ["Kinematics problems", "Optics notes", "Past paper 2023"],
        ("Chemistry", "#22c55e"): ["Organic reactions", "Periodic table quiz"],
        ("Biology", "#3b82f6"): ["Cell biology", "Genetics flashcards", "Human physiology"],
    }

    subject_ids = []
    for (name, color), task_names in subjects_tasks.items():
        subject = await agg.upsert_subject(None, name, color)
        subject_ids.append(subject.id)
        for desc in task_names:
            task = await agg.upsert_task(None, subject.id, desc)
            if random.random() < 0.4:
                await agg.toggle_task(task.id)

    # ── Sessions ────────────────────────────────────────────────────────
    today = date.today()
    for offset in range(num_days, -1, -1):
        day = today - timedelta(days=offset)
        if random.random() < 0.2:
            continue  # a day off
        for _ in range(random.randint(1, 3)):
            start = datetime.combine(day, datetime.min.time()) + timedelta(
                hours=random.randint(7, 20), minutes=random.randint(0, 59)
            )
            end = start + timedelta(minutes=random.randint(20, 90))
            if end.date() != day:
                continue
            await agg.upsert_session(
                None, random.choice(subject_ids), day,
                start.time().replace(second=0), end.time().replace(second=0),
            )

    await agg.upsert_goal("Final exams", today + timedelta(days=120), today - timedelta(days=60))
    await store.close()
    print(f"Seeded {len(agg.state.sessions)} sessions across {num_days} days into {db_path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", type=Path, default=None)
    parser.add_argument("--days", type=int, default=30)
    args = parser.parse_args()
    asyncio.run(seed(args.db or get_settings().db_path, args.days))
