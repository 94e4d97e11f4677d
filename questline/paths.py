"""
Filesystem locations: data, logs, snapshots and the runtime config.
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"


def _env_path(name: str):
    raw = os.getenv(name, "").strip()
    return Path(raw).expanduser() if raw else None


def get_data_dir() -> Path:
    """QUESTLINE_DATA_DIR, else <project_root>/data."""
    return _env_path("QUESTLINE_DATA_DIR") or PROJECT_ROOT / "data"


def get_logs_dir() -> Path:
    """QUESTLINE_LOG_DIR, else <project_root>/logs."""
    return _env_path("QUESTLINE_LOG_DIR") or PROJECT_ROOT / "logs"


DATA_DIR = get_data_dir()
SNAPSHOT_DIR = DATA_DIR / "snapshots"
