import json

from click.testing import CliRunner

from cli.questline_cmd import questline
from questline.config_manager import config


def _run(tmp_path, *args):
    result = CliRunner().invoke(questline, ["--data-dir", str(tmp_path), *args])
    assert result.exit_code == 0, result.output
    return result.output


def test_init_creates_data_files(tmp_path):
    output = _run(tmp_path, "init", "--name", "Jin")
    assert "Ready, Jin" in output
    assert (tmp_path / "character.json").exists()
    assert (tmp_path / "categories.json").exists()


def test_task_lifecycle_through_cli(tmp_path):
    _run(tmp_path, "init")
    added = _run(tmp_path, "task", "add", "Read a chapter", "--category", "learning")
    task_id = added.split()[1]

    assert "Read a chapter" in _run(tmp_path, "task", "list")
    assert "+32 XP" in _run(tmp_path, "task", "done", task_id)
    assert "already done" in _run(tmp_path, "task", "done", task_id)

    snapshot = json.loads(_run(tmp_path, "snapshot"))
    assert snapshot["completionsToday"] == 1
    assert "Read a chapter" not in json.dumps(snapshot)

    assert "Reopened" in _run(tmp_path, "task", "reopen", task_id)
    assert "Level 1" in _run(tmp_path, "status")
    assert "Deleted" in _run(tmp_path, "task", "rm", task_id)
    assert "No tasks." in _run(tmp_path, "task", "list", "--all")


def test_focus_and_quests(tmp_path):
    assert "+30 XP" in _run(tmp_path, "focus", "25", "--category", "learning")
    assert "logged" in _run(tmp_path, "focus", "10", "--no-rewards")
    quests = _run(tmp_path, "quests", "--refresh")
    assert "Shadow Concentration" in quests
    assert "Deep Work Marathon" in quests


def test_prestige_below_cap(tmp_path):
    assert "Not yet: level 1/60" in _run(tmp_path, "prestige")


def test_snapshot_export(tmp_path):
    output = _run(tmp_path, "snapshot", "--export")
    assert list((tmp_path / "snapshots").glob("snapshot_*.json"))
    assert "snapshot_" in output


def test_unknown_task_is_rejected(tmp_path):
    result = CliRunner().invoke(questline, ["--data-dir", str(tmp_path), "task", "done", "nope"])
    assert result.exit_code == 2
    assert "0 tasks match" in result.output


def test_unknown_category_is_rejected(tmp_path):
    result = CliRunner().invoke(questline, ["--data-dir", str(tmp_path), "task", "add", "x", "--category", "nope"])
    assert result.exit_code == 2


def test_focus_records_start_and_end_events(tmp_path):
    _run(tmp_path, "focus", "25", "--category", "learning")
    lines = (tmp_path / "event_log.jsonl").read_text(encoding="utf-8").splitlines()
    types = [json.loads(line)["eventType"] for line in lines]
    assert types.index("FocusSessionStarted") < types.index("FocusSessionEnded")


def test_stats_reports_week_and_habits(tmp_path):
    _run(tmp_path, "focus", "50", "--category", "learning")
    output = _run(tmp_path, "stats")
    assert "50 min focus" in output
    assert "Completion rate on focus days: 0%" in output
    assert "Peak hour:" in output
    assert "1 active days, 50 min" in output


def test_unknown_storage_backend_is_a_config_error(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "STORAGE_BACKEND", "sqlite")
    result = CliRunner().invoke(questline, ["--data-dir", str(tmp_path), "status"])
    assert result.exit_code == 1
    assert "Unknown STORAGE_BACKEND 'sqlite'" in result.output
