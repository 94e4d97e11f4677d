import json

import pytest

from questline.event_sourcing import EventType, append_event, make_event
from questline.exceptions import ConfigError, StateError
from questline.models import CharacterState, DailyAggregate, Task, TaskStatus
from questline.storage import EventLogTable, MemoryTable, memory_database, open_backend, open_database
from questline.storage.database import EVENT_LOG_FILENAME


def test_memory_table_copies_rows_in_and_out():
    table = MemoryTable()
    task = Task(id="t1", title="Read", category_id="learning")
    table.put(task)

    task.title = "mutated after put"
    fetched = table.get("t1")
    assert fetched.title == "Read"

    fetched.title = "mutated after get"
    assert table.get("t1").title == "Read"


def test_memory_table_counts_writes():
    table = MemoryTable()
    table.put(Task(id="t1", title="a", category_id="c"))
    table.delete("t1")
    table.delete("missing")
    assert table.writes == 2


def test_scan_by_index_range_is_inclusive_and_sorted():
    table = MemoryTable(key="date")
    for date in ("2026-03-03", "2026-03-01", "2026-03-02", "2026-03-09"):
        table.put(DailyAggregate(date=date))
    rows = table.scan_by_index_range("date", "2026-03-01", "2026-03-03")
    assert [r.date for r in rows] == ["2026-03-01", "2026-03-02", "2026-03-03"]


def test_count_and_ordering():
    table = MemoryTable()
    table.put(Task(id="a", title="a", category_id="c", updated_at="2026-03-01T10:00:00"))
    table.put(Task(id="b", title="b", category_id="c", status=TaskStatus.DONE, updated_at="2026-03-02T10:00:00"))
    table.put(Task(id="c", title="c", category_id="c"))

    assert table.count() == 3
    assert table.count(lambda t: t.status == TaskStatus.DONE) == 1
    assert [t.id for t in table.list_ordered_by("updated_at", descending=True)] == ["b", "a", "c"]


def test_singleton_tables_keep_one_row():
    db = memory_database()
    db.character.put(CharacterState())
    db.character.put(CharacterState(level=2))
    assert db.character.count() == 1
    assert db.character.get_first().level == 2


def test_event_log_is_append_only():
    log = EventLogTable()
    event = append_event(log, "u1", EventType.QUEST_COMPLETED, {"questId": "q1"})

    with pytest.raises(StateError):
        log.put(event)
    with pytest.raises(StateError):
        log.delete(event.event_id)
    assert log.count() == 1


def test_json_tables_persist_across_reopen(tmp_path):
    db = open_database(tmp_path)
    db.tasks.put(Task(id="t1", title="Persist me", category_id="learning"))
    db.character.put(CharacterState(level=4, stats={"strength": 9}))
    append_event(db.event_log, "u1", EventType.TASK_DELETED, {"taskId": "t0"})

    reopened = open_database(tmp_path)
    assert reopened.tasks.get("t1").title == "Persist me"
    assert reopened.character.get_first().level == 4
    assert reopened.character.get_first().stats["strength"] == 9
    assert reopened.event_log.list_all()[0].payload.task_id == "t0"

    saved = json.loads((tmp_path / "tasks.json").read_text(encoding="utf-8"))
    assert saved["rows"]["t1"]["categoryId"] == "learning"


def test_corrupt_event_log_lines_are_skipped(tmp_path, isolated_logs):
    good = make_event("u1", EventType.TASK_DELETED, {"taskId": "t1"}).to_dict()
    newer = dict(good, eventId="evt_future", schemaVersion=99)
    (tmp_path / EVENT_LOG_FILENAME).write_text(
        "\n".join([json.dumps(good), "{not json", json.dumps(newer), ""]),
        encoding="utf-8",
    )

    log = EventLogTable(tmp_path / EVENT_LOG_FILENAME)
    assert log.count() == 1
    assert log.skipped_lines == 2
    assert (isolated_logs / "corruption_dump.log").exists()


def test_unreadable_table_file_raises_state_error(tmp_path):
    (tmp_path / "tasks.json").write_text("{broken", encoding="utf-8")
    with pytest.raises(StateError):
        open_database(tmp_path)


def test_open_backend_by_name(tmp_path):
    assert open_backend("json", tmp_path).data_dir == tmp_path
    assert open_backend("memory", tmp_path).data_dir is None

    with pytest.raises(ConfigError) as exc_info:
        open_backend("sqlite", tmp_path)
    assert "runtime.yaml" in exc_info.value.get_user_message()
