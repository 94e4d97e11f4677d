"""
Configuration Manager for Questline.

Central place for tunable constants. Every value here is a tuning choice and
can be overridden from config/runtime.yaml.

Usage:
    from questline.config_manager import config
    cap = config.SEASON_CAP
"""
from dataclasses import dataclass

import yaml

from questline.paths import CONFIG_DIR

RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """
    Runtime constants.

    Progression formulas live in questline.progression; the values below
    decide how much history those formulas are fed and where the ceilings sit.
    """

    # === Character ===

    # Level ceiling before prestige is required
    SEASON_CAP: int = 60

    # Starting value for each of the six stats
    BASE_STAT_VALUE: int = 5

    # === Anti-exploit windows ===

    # Trailing window for the repeated-title penalty (hours)
    REPEAT_TITLE_WINDOW_HOURS: int = 24

    # Feed today's earned XP into the daily soft cap. When False the cap is
    # never reached (callers pass 0).
    APPLY_DAILY_SOFT_CAP: bool = True

    # === Quests ===

    # Days of aggregates used to size the adaptive daily focus quest
    QUEST_SIGNAL_WINDOW_DAYS: int = 14

    # === Snapshot ===

    # Trailing window (inclusive of today) for weekly snapshot totals
    SNAPSHOT_WINDOW_DAYS: int = 7

    # Number of categories reported in a snapshot
    TOP_CATEGORY_LIMIT: int = 3

    # Exported snapshot files older than this are removed by cleanup
    SNAPSHOT_RETENTION_DAYS: int = 30

    # === Recurrence ===

    # Upper bound on week cycles scanned for a weekly_days rule
    RECURRENCE_MAX_CYCLES: int = 80

    # === Storage ===

    # "json" (files under the data dir) or "memory"
    STORAGE_BACKEND: str = "json"


def _load_runtime_config() -> dict:
    """Load runtime overrides if present."""
    if not RUNTIME_CONFIG_PATH.exists():
        return {}

    try:
        with open(RUNTIME_CONFIG_PATH, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError):
        return {}


def get_config() -> SystemConfig:
    """
    Build the configuration.

    Priority: runtime.yaml > defaults
    """
    base = SystemConfig()
    overrides = _load_runtime_config()

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    return base


config = get_config()
