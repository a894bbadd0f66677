"""
StudyFlow — offline study tracker.
Entry point: prints a dashboard snapshot of the local study data.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from studyflow.app import StudyFlowApp
from studyflow.config import get_settings
from studyflow.errors import StorageUnavailable
from studyflow.services.analytics import format_duration


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def render_dashboard(app: StudyFlowApp) -> str:
    """Plain-text dashboard: today, streak, tasks, goal, per-subject totals."""
    data = app.aggregator.dashboard()
    streak = data["streak"]
    lines = [
        data["date"].strftime("%A, %B %d, %Y"),
        f"Today:   {format_duration(data['today_seconds'])}",
        f"Streak:  {streak} {'day' if streak == 1 else 'days'}",
        f"Tasks:   {data['tasks_completed']}/{data['tasks_total']}",
    ]

    goal, gp = data["goal"], data["goal_progress"]
    if goal is None or gp is None:
        lines.append("Goal:    --")
    else:
        lines.append(
            f"Goal:    {goal.name}: {gp.days_remaining} days "
            f"({gp.weeks_remaining} weeks) left, {gp.percent_elapsed:.0f}% elapsed"
        )

    if not data["subjects"]:
        lines.append("No subjects yet. Add one to get started!")
    for subject, seconds in data["subjects"]:
        lines.append(f"  - {subject.name}: {format_duration(seconds)}")
    return "\n".join(lines)


async def _run(app: StudyFlowApp) -> str:
    await app.init()
    try:
        return render_dashboard(app)
    finally:
        await app.close()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="studyflow", description="Offline study tracker.")
    parser.add_argument("--db", type=Path, help="SQLite database path")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.db is not None:
        settings = replace(settings, db_path=args.db)

    setup_logging(settings.log_level, settings.log_file)
    logger = logging.getLogger(__name__)
    logger.info("Starting StudyFlow...")

    try:
        text = asyncio.run(_run(StudyFlowApp(settings)))
    except StorageUnavailable as exc:
        logger.error("Failed to initialize app: %s", exc)
        sys.exit(1)
    print(text)


if __name__ == "__main__":
    main()


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The entry point. Sets up logging (console + file), opens the local
#   database, loads everything and prints the dashboard.
#
# Key points:
#   - The only fatal error is "cannot open the database". Everything
#     after that is recoverable and reported, not crashed on.
#   - asyncio.run owns the event loop; the timer's ticks would run on the
#     same loop in an interactive front end.
