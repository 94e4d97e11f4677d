"""
Event log for Questline.

The log is the ledger of what happened:
- AppEvent: immutable envelope (eventId, schemaVersion, eventType, occurredAt,
  userId, payload)
- one payload model per EventType, so each event carries an explicit schema
- append_event: the only write path into the log table
- validate_event_shape / normalize_event / event_from_dict: reading and
  upgrading stored records
"""
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from questline.exceptions import SchemaVersionError
from questline.logger import get_logger
from questline.utils import make_id, now_iso

logger = get_logger("event_sourcing")

EVENT_SCHEMA_VERSION = 1
REQUIRED_EVENT_FIELDS = ("eventType", "occurredAt", "schemaVersion", "eventId", "userId")
LEGACY_FIELD_NAMES = {
    "type": "eventType",
    "event_type": "eventType",
    "timestamp": "occurredAt",
    "occurred_at": "occurredAt",
    "event_id": "eventId",
    "schema_version": "schemaVersion",
    "user_id": "userId",
}


class EventType(str, Enum):
    TASK_CREATED = "TaskCreated"
    TASK_UPDATED = "TaskUpdated"
    TASK_COMPLETED = "TaskCompleted"
    TASK_REOPENED = "TaskReopened"
    TASK_DELETED = "TaskDeleted"
    FOCUS_SESSION_STARTED = "FocusSessionStarted"
    FOCUS_SESSION_ENDED = "FocusSessionEnded"
    QUEST_GENERATED = "QuestGenerated"
    QUEST_COMPLETED = "QuestCompleted"
    ACHIEVEMENT_PROGRESSED = "AchievementProgressed"
    BADGE_UNLOCKED = "BadgeUnlocked"
    PERK_UNLOCKED = "PerkUnlocked"
    LEVEL_UP = "LevelUp"
    PRESTIGE_TRIGGERED = "PrestigeTriggered"
    CATEGORY_CREATED = "CategoryCreated"
    SETTINGS_UPDATED = "SettingsUpdated"


# --- Payloads ---

class EventPayload(BaseModel):
    """Base payload. Unknown fields are kept so additive changes round-trip."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class TaskCreatedPayload(EventPayload):
    task_id: str
    category_id: Optional[str] = None


class TaskUpdatedPayload(EventPayload):
    task_id: str
    patch_keys: List[str] = []


class TaskCompletedPayload(EventPayload):
    task_id: str
    xp: int
    category_id: Optional[str] = None
    completed_at: Optional[str] = None


class TaskReopenedPayload(EventPayload):
    task_id: str
    xp_gain: int = 0
    completed_at: Optional[str] = None


class TaskDeletedPayload(EventPayload):
    task_id: str


class FocusSessionStartedPayload(EventPayload):
    session_id: str
    task_id: Optional[str] = None
    category_id: Optional[str] = None


class FocusSessionEndedPayload(EventPayload):
    session_id: str
    minutes: int
    xp: int = 0
    task_id: Optional[str] = None
    category_id: Optional[str] = None
    ended_at: Optional[str] = None
    rewarded: bool = True


class QuestGeneratedPayload(EventPayload):
    quest_id: str
    objective_type: str
    target: int


class QuestCompletedPayload(EventPayload):
    quest_id: str


class AchievementProgressedPayload(EventPayload):
    achievement_id: str
    value: int


class BadgeUnlockedPayload(EventPayload):
    achievement_id: str
    tier: Optional[str] = None


class PerkUnlockedPayload(EventPayload):
    perk_id: str
    cost: int = 0


class LevelUpPayload(EventPayload):
    level_before: int
    level_after: int


class PrestigeTriggeredPayload(EventPayload):
    level_before: int
    prestige_rank: int
    legacy_points_gained: int


class CategoryCreatedPayload(EventPayload):
    category_id: str


class SettingsUpdatedPayload(EventPayload):
    keys: List[str] = []


PAYLOAD_MODELS: Dict[EventType, Type[EventPayload]] = {
    EventType.TASK_CREATED: TaskCreatedPayload,
    EventType.TASK_UPDATED: TaskUpdatedPayload,
    EventType.TASK_COMPLETED: TaskCompletedPayload,
    EventType.TASK_REOPENED: TaskReopenedPayload,
    EventType.TASK_DELETED: TaskDeletedPayload,
    EventType.FOCUS_SESSION_STARTED: FocusSessionStartedPayload,
    EventType.FOCUS_SESSION_ENDED: FocusSessionEndedPayload,
    EventType.QUEST_GENERATED: QuestGeneratedPayload,
    EventType.QUEST_COMPLETED: QuestCompletedPayload,
    EventType.ACHIEVEMENT_PROGRESSED: AchievementProgressedPayload,
    EventType.BADGE_UNLOCKED: BadgeUnlockedPayload,
    EventType.PERK_UNLOCKED: PerkUnlockedPayload,
    EventType.LEVEL_UP: LevelUpPayload,
    EventType.PRESTIGE_TRIGGERED: PrestigeTriggeredPayload,
    EventType.CATEGORY_CREATED: CategoryCreatedPayload,
    EventType.SETTINGS_UPDATED: SettingsUpdatedPayload,
}


def parse_payload(event_type: Union[EventType, str], raw: Any) -> EventPayload:
    """Validate a raw payload against the model registered for event_type."""
    model = PAYLOAD_MODELS[EventType(event_type)]
    if isinstance(raw, model):
        return raw
    if isinstance(raw, EventPayload):
        raise ValueError(
            f"{type(raw).__name__} is not a valid payload for {EventType(event_type).value}"
        )
    return model.model_validate(raw or {})


# --- Envelope ---

class AppEvent(BaseModel):
    """Immutable event envelope as persisted in the log."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    event_id: str
    schema_version: int = EVENT_SCHEMA_VERSION
    event_type: EventType
    occurred_at: str
    user_id: str
    payload: EventPayload

    @field_validator("payload", mode="before")
    @classmethod
    def _typed_payload(cls, value: Any, info) -> EventPayload:
        event_type = info.data.get("event_type")
        if event_type is None:
            return value
        return parse_payload(event_type, value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventId": self.event_id,
            "schemaVersion": self.schema_version,
            "eventType": self.event_type.value,
            "occurredAt": self.occurred_at,
            "userId": self.user_id,
            "payload": self.payload.model_dump(by_alias=True, exclude_none=True),
        }


def make_event(
    user_id: str,
    event_type: Union[EventType, str],
    payload: Union[EventPayload, Dict[str, Any]],
    occurred_at: Optional[str] = None,
) -> AppEvent:
    """Stamp a new envelope: fresh id, current schema version, timestamp."""
    event_type = EventType(event_type)
    return AppEvent(
        event_id=make_id("evt_"),
        schema_version=EVENT_SCHEMA_VERSION,
        event_type=event_type,
        occurred_at=occurred_at or now_iso(),
        user_id=user_id,
        payload=parse_payload(event_type, payload),
    )


def append_event(
    log,
    user_id: str,
    event_type: Union[EventType, str],
    payload: Union[EventPayload, Dict[str, Any]],
    occurred_at: Optional[str] = None,
) -> AppEvent:
    """
    Append a new event to the log table and return it.

    The log refuses to overwrite or delete entries; this is the only way
    events get in.
    """
    event = make_event(user_id, event_type, payload, occurred_at=occurred_at)
    log.put(event)
    logger.debug(f"event appended: {event.event_type.value} {event.event_id}")
    return event


# --- Reading stored records ---

def validate_event_shape(event: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
    """
    Validate a stored record and return validation details.

    Args:
        event: Raw event dictionary
        strict: If True, every envelope field is mandatory.
            If False, only `eventType` and `occurredAt` are (legacy-compatible).
    """
    missing = []
    required = REQUIRED_EVENT_FIELDS if strict else ("eventType", "occurredAt")
    for name in required:
        if event.get(name) in (None, ""):
            missing.append(name)
    return {"valid": not missing, "missing": missing}


def _coerce_schema_version(value: Any) -> int:
    # Early logs wrote "1.0"
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return EVENT_SCHEMA_VERSION


def normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a stored record to the canonical envelope.

    Renames legacy snake_case and pre-envelope keys, fills missing defaults and
    coerces schemaVersion to an int. Already-canonical records come back equal.
    """
    normalized: Dict[str, Any] = {}
    for key, value in event.items():
        normalized[LEGACY_FIELD_NAMES.get(key, key)] = value
    normalized.setdefault("occurredAt", now_iso())
    normalized["schemaVersion"] = _coerce_schema_version(
        normalized.get("schemaVersion", EVENT_SCHEMA_VERSION)
    )
    normalized.setdefault("eventId", make_id("evt_"))
    normalized.setdefault("userId", "local")
    if normalized.get("payload") is None:
        normalized["payload"] = {}
    return normalized


def event_from_dict(raw: Dict[str, Any]) -> AppEvent:
    """
    Build an AppEvent from a stored record.

    Raises:
        SchemaVersionError: the record was written by a newer schema.
        pydantic.ValidationError / ValueError: the record does not match its
            event type.
    """
    version = _coerce_schema_version(raw.get("schemaVersion", EVENT_SCHEMA_VERSION))
    if version > EVENT_SCHEMA_VERSION:
        raise SchemaVersionError(version, EVENT_SCHEMA_VERSION)
    return AppEvent.model_validate({**raw, "schemaVersion": version})


def sort_for_replay(events: Iterable[AppEvent]) -> List[AppEvent]:
    """Stable replay order: occurredAt, then eventId."""
    return sorted(events, key=lambda e: (e.occurred_at, e.event_id))
