import json

import pytest

from questline.event_sourcing import (
    EVENT_SCHEMA_VERSION,
    EventType,
    TaskCompletedPayload,
    event_from_dict,
    make_event,
    normalize_event,
    sort_for_replay,
    validate_event_shape,
)
from questline.exceptions import SchemaVersionError
from tools.migrate_event_log_schema import migrate, normalize_event_log


def test_validate_event_shape_strict_requires_envelope_fields():
    legacy = {"eventType": "TaskCreated", "occurredAt": "2026-02-10T00:00:00"}
    loose = validate_event_shape(legacy, strict=False)
    strict = validate_event_shape(legacy, strict=True)

    assert loose["valid"] is True
    assert strict["valid"] is False
    assert "schemaVersion" in strict["missing"]
    assert "eventId" in strict["missing"]


def test_make_event_stamps_envelope():
    event = make_event("u1", EventType.TASK_COMPLETED, {"taskId": "t1", "xp": 31})
    assert event.event_id.startswith("evt_")
    assert event.schema_version == EVENT_SCHEMA_VERSION
    assert isinstance(event.payload, TaskCompletedPayload)
    assert event.payload.xp == 31


def test_event_round_trips_through_dict_with_camel_case_payload():
    event = make_event("u1", EventType.TASK_COMPLETED, TaskCompletedPayload(
        task_id="t1", xp=31, category_id="learning", completed_at="2026-03-01T10:00:00+00:00",
    ))
    raw = event.to_dict()
    assert raw["payload"]["taskId"] == "t1"
    assert raw["payload"]["categoryId"] == "learning"
    assert event_from_dict(json.loads(json.dumps(raw))) == event


def test_payload_rejects_wrong_shape():
    with pytest.raises(ValueError):
        make_event("u1", EventType.TASK_COMPLETED, {"xp": 3})


def test_unknown_payload_fields_are_tolerated():
    raw = make_event("u1", EventType.QUEST_COMPLETED, {"questId": "q1"}).to_dict()
    raw["payload"]["addedLater"] = True
    event = event_from_dict(raw)
    assert event.payload.quest_id == "q1"


def test_newer_schema_version_is_rejected():
    raw = make_event("u1", EventType.QUEST_COMPLETED, {"questId": "q1"}).to_dict()
    raw["schemaVersion"] = EVENT_SCHEMA_VERSION + 1
    with pytest.raises(SchemaVersionError):
        event_from_dict(raw)


def test_normalize_event_renames_legacy_keys():
    normalized = normalize_event({"event_type": "TaskDeleted", "timestamp": "2026-02-10T00:00:00",
                                  "schema_version": "1.0", "payload": {"taskId": "t1"}})
    assert normalized["eventType"] == "TaskDeleted"
    assert normalized["occurredAt"] == "2026-02-10T00:00:00"
    assert normalized["schemaVersion"] == 1
    assert normalized["userId"] == "local"
    assert normalized["eventId"].startswith("evt_")
    assert event_from_dict(normalized).payload.task_id == "t1"


def test_normalize_event_keeps_canonical_records():
    raw = make_event("u1", EventType.QUEST_COMPLETED, {"questId": "q1"}).to_dict()
    assert normalize_event(raw) == raw


def test_sort_for_replay_orders_by_time_then_id():
    a = make_event("u1", EventType.QUEST_COMPLETED, {"questId": "a"}, occurred_at="2026-03-02T00:00:00")
    b = make_event("u1", EventType.QUEST_COMPLETED, {"questId": "b"}, occurred_at="2026-03-01T00:00:00")
    assert sort_for_replay([a, b]) == [b, a]


def test_normalize_event_log_adds_envelope_fields(tmp_path):
    src = tmp_path / "event_log.jsonl"
    src.write_text(
        json.dumps({"type": "TaskCreated", "timestamp": "2026-02-10T00:00:00"}) + "\n",
        encoding="utf-8",
    )

    events, report = normalize_event_log(src)
    assert report.total == 1
    assert report.changed == 1
    assert report.parse_errors == 0
    assert report.invalid_lines == [1]
    assert events[0]["schemaVersion"] == EVENT_SCHEMA_VERSION
    assert events[0]["eventId"].startswith("evt_")


def test_migrate_in_place_creates_backup_and_writes_normalized(tmp_path):
    src = tmp_path / "event_log.jsonl"
    src.write_text(
        json.dumps({"type": "TaskCreated", "timestamp": "2026-02-10T00:00:00"}) + "\n",
        encoding="utf-8",
    )

    code = migrate(src=src, dest=None, apply=True, backup=True)
    assert code == 0

    backups = list(tmp_path.glob("event_log.backup_*.jsonl"))
    assert backups

    saved = json.loads(src.read_text(encoding="utf-8").strip())
    assert saved["schemaVersion"] == EVENT_SCHEMA_VERSION
    assert saved["eventType"] == "TaskCreated"


def test_migrate_dry_run_leaves_file_untouched(tmp_path):
    src = tmp_path / "event_log.jsonl"
    original = json.dumps({"type": "TaskCreated", "timestamp": "2026-02-10T00:00:00"}) + "\n"
    src.write_text(original, encoding="utf-8")

    assert migrate(src=src) == 0
    assert src.read_text(encoding="utf-8") == original


def test_normalize_event_log_drops_repeated_event_ids(tmp_path):
    event = make_event("u1", EventType.QUEST_COMPLETED, {"questId": "q1"})
    line = json.dumps(event.to_dict()) + "\n"
    src = tmp_path / "event_log.jsonl"
    src.write_text(line + line, encoding="utf-8")

    events, report = normalize_event_log(src)
    assert len(events) == 1
    assert report.duplicates == 1
    assert report.invalid_lines == []


def test_migrate_refuses_to_apply_over_newer_schema(tmp_path):
    src = tmp_path / "event_log.jsonl"
    original = json.dumps({
        "schemaVersion": EVENT_SCHEMA_VERSION + 1,
        "eventId": "evt_future",
        "userId": "u1",
        "occurredAt": "2026-02-10T00:00:00",
        "eventType": "QuestCompleted",
        "payload": {"questId": "q1"},
    }) + "\n"
    src.write_text(original, encoding="utf-8")

    assert migrate(src=src, apply=True) == 1
    assert src.read_text(encoding="utf-8") == original
