"""
Database: the twelve entity tables the core works against.

open_database() keeps everything under a data directory; memory_database()
is the same schema without files (tests, dry runs). open_backend() picks one
from the configured backend name.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from questline.config_manager import RUNTIME_CONFIG_PATH
from questline.exceptions import ConfigError
from questline.models import (
    Achievement,
    AchievementProgress,
    AppSettings,
    Category,
    CharacterState,
    DailyAggregate,
    FocusSession,
    Quest,
    StreakState,
    Task,
    UserProfile,
)
from questline.storage.gateway import Table
from questline.storage.json_store import EventLogTable, JsonTable
from questline.storage.memory import MemoryTable, singleton_key

EVENT_LOG_FILENAME = "event_log.jsonl"


@dataclass
class Database:
    user_profile: Table
    settings: Table
    categories: Table
    tasks: Table
    focus_sessions: Table
    character: Table
    quests: Table
    achievements: Table
    achievement_progress: Table
    streaks: Table
    analytics_daily: Table
    event_log: Table
    data_dir: Optional[Path] = None


def memory_database() -> Database:
    return Database(
        user_profile=MemoryTable(key="user_id", name="user_profile"),
        settings=MemoryTable(key=singleton_key, name="settings"),
        categories=MemoryTable(name="categories"),
        tasks=MemoryTable(name="tasks"),
        focus_sessions=MemoryTable(name="focus_sessions"),
        character=MemoryTable(key=singleton_key, name="character"),
        quests=MemoryTable(name="quests"),
        achievements=MemoryTable(name="achievements"),
        achievement_progress=MemoryTable(name="achievement_progress"),
        streaks=MemoryTable(key=singleton_key, name="streaks"),
        analytics_daily=MemoryTable(key="date", name="analytics_daily"),
        event_log=EventLogTable(),
    )


def open_database(data_dir: Path) -> Database:
    """File-backed database rooted at data_dir (created on first write)."""
    data_dir = Path(data_dir)
    return Database(
        user_profile=JsonTable(data_dir / "user_profile.json", UserProfile.from_dict, key="user_id"),
        settings=JsonTable(data_dir / "settings.json", AppSettings.from_dict, key=singleton_key),
        categories=JsonTable(data_dir / "categories.json", Category.from_dict),
        tasks=JsonTable(data_dir / "tasks.json", Task.from_dict),
        focus_sessions=JsonTable(data_dir / "focus_sessions.json", FocusSession.from_dict),
        character=JsonTable(data_dir / "character.json", CharacterState.from_dict, key=singleton_key),
        quests=JsonTable(data_dir / "quests.json", Quest.from_dict),
        achievements=JsonTable(data_dir / "achievements.json", Achievement.from_dict),
        achievement_progress=JsonTable(
            data_dir / "achievement_progress.json", AchievementProgress.from_dict
        ),
        streaks=JsonTable(data_dir / "streaks.json", StreakState.from_dict, key=singleton_key),
        analytics_daily=JsonTable(data_dir / "analytics_daily.json", DailyAggregate.from_dict, key="date"),
        event_log=EventLogTable(data_dir / EVENT_LOG_FILENAME),
        data_dir=data_dir,
    )


def open_backend(backend: str, data_dir: Path) -> Database:
    """Database for a STORAGE_BACKEND value: "json" or "memory"."""
    if backend == "json":
        return open_database(data_dir)
    if backend == "memory":
        return memory_database()
    raise ConfigError(
        f"Unknown STORAGE_BACKEND '{backend}' (expected 'json' or 'memory')",
        config_path=str(RUNTIME_CONFIG_PATH),
    )
