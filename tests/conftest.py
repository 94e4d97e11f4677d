import os
import sys
import tempfile
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests away from the real data directory (read at import time).
os.environ["QUESTLINE_DATA_DIR"] = tempfile.mkdtemp(prefix="questline-test-")

import questline.logger as questline_logger  # noqa: E402
from questline.bootstrap import bootstrap_data, ensure_user_profile  # noqa: E402
from questline.storage import memory_database  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    logs_dir = tmp_path / "logs"
    monkeypatch.setattr(questline_logger, "LOGS_DIR", logs_dir)
    return logs_dir


@pytest.fixture
def db():
    database = memory_database()
    bootstrap_data(database)
    ensure_user_profile(database)
    return database


@pytest.fixture
def user_id(db):
    return db.user_profile.get_first().user_id
