"""
Settings loaded from environment variables (+ optional .env file).

One frozen Settings object for the whole process. Nothing here touches the
database; it only decides where things live and how the timer behaves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "STUDYFLOW"

DEFAULT_DATA_DIR = Path.home() / ".studyflow"
DEFAULT_TICK_INTERVAL = 1.0
DEFAULT_MIN_SESSION_SECONDS = 60


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_file: Path
    log_level: str
    tick_interval: float
    min_session_seconds: int

    @staticmethod
    def from_env() -> "Settings":
        db_path = _env_path(_k("DB_PATH"), DEFAULT_DATA_DIR / "studyflow.db")
        log_file = _env_path(_k("LOG_FILE"), db_path.parent / "studyflow.log")
        log_level = _env(_k("LOG_LEVEL"), "INFO").upper()

        tick_interval = _env_float(_k("TICK_INTERVAL"), DEFAULT_TICK_INTERVAL)
        if tick_interval <= 0:
            tick_interval = DEFAULT_TICK_INTERVAL

        min_session_seconds = max(
            0, _env_int(_k("MIN_SESSION_SECONDS"), DEFAULT_MIN_SESSION_SECONDS)
        )

        return Settings(
            db_path=db_path,
            log_file=log_file,
            log_level=log_level,
            tick_interval=tick_interval,
            min_session_seconds=min_session_seconds,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading .env on first use."""
    global _settings
    if _settings is None:
        load_dotenv(override=False)
        _settings = Settings.from_env()
    return _settings


def _reset_settings() -> None:
    """Forget the cached settings (tests only)."""
    global _settings
    _settings = None
