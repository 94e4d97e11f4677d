"""
Core Data Models for Questline.
Defines the character, streak, task, focus, quest and analytics records.

Records persist as camelCase dictionaries (to_dict / from_dict); attributes
are snake_case. Character and streak state are frozen value objects: every
change produces a new value via dataclasses.replace.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class StatKey(str, Enum):
    STRENGTH = "strength"
    VITALITY = "vitality"
    INTELLECT = "intellect"
    CREATIVITY = "creativity"
    DISCIPLINE = "discipline"
    SOCIAL = "social"


STAT_KEYS: Tuple[str, ...] = tuple(s.value for s in StatKey)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    TODO = "todo"
    DONE = "done"


class SessionType(str, Enum):
    WORK = "work"
    BREAK = "break"
    LONG_BREAK = "long_break"


class QuestKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    STORYLINE = "storyline"
    BOSS = "boss"


class ObjectiveType(str, Enum):
    TASK_COMPLETIONS = "task_completions"
    FOCUS_MINUTES = "focus_minutes"
    CATEGORY_BALANCE = "category_balance"


class QuestStatus(str, Enum):
    ACTIVE = "active"
    COMPLETE = "complete"


class RequirementType(str, Enum):
    TASKS_COMPLETED = "tasks_completed"
    FOCUS_MINUTES_TOTAL = "focus_minutes_total"
    TASK_STREAK = "task_streak"


class AchievementTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    LEGENDARY = "legendary"


def default_stats(value: int = 5) -> Dict[str, int]:
    return {key: value for key in STAT_KEYS}


# --- Character / streak ---

@dataclass(frozen=True)
class CharacterState:
    """Singleton progression state."""
    level: int = 1
    xp_current: int = 0
    xp_lifetime: int = 0
    season_cap: int = 60
    prestige_rank: int = 0
    legacy_points: int = 0
    stats: Dict[str, int] = field(default_factory=default_stats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "xpCurrent": self.xp_current,
            "xpLifetime": self.xp_lifetime,
            "seasonCap": self.season_cap,
            "prestigeRank": self.prestige_rank,
            "legacyPoints": self.legacy_points,
            "stats": dict(self.stats),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CharacterState":
        return cls(
            level=d.get("level", 1),
            xp_current=d.get("xpCurrent", 0),
            xp_lifetime=d.get("xpLifetime", 0),
            season_cap=d.get("seasonCap", 60),
            prestige_rank=d.get("prestigeRank", 0),
            legacy_points=d.get("legacyPoints", 0),
            stats={**default_stats(), **d.get("stats", {})},
        )


@dataclass(frozen=True)
class StreakState:
    """Consecutive-day counters, one per activity type."""
    task_days: int = 0
    focus_days: int = 0
    last_task_day: Optional[str] = None   # yyyy-MM-dd
    last_focus_day: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskDays": self.task_days,
            "focusDays": self.focus_days,
            "lastTaskDay": self.last_task_day,
            "lastFocusDay": self.last_focus_day,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StreakState":
        return cls(
            task_days=d.get("taskDays", 0),
            focus_days=d.get("focusDays", 0),
            last_task_day=d.get("lastTaskDay"),
            last_focus_day=d.get("lastFocusDay"),
        )


# --- Tasks ---

@dataclass(frozen=True)
class DailyInterval:
    interval_days: int = 1
    kind: str = field(default="daily_interval", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "intervalDays": self.interval_days}


@dataclass(frozen=True)
class WeeklyDays:
    interval_weeks: int = 1
    weekdays: Tuple[int, ...] = ()  # 0 = Sunday .. 6 = Saturday
    kind: str = field(default="weekly_days", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "intervalWeeks": self.interval_weeks, "weekdays": list(self.weekdays)}


Recurrence = Union[DailyInterval, WeeklyDays]


def recurrence_from_dict(d: Optional[Dict[str, Any]]) -> Optional[Recurrence]:
    if not d:
        return None
    if d.get("kind") == "daily_interval":
        return DailyInterval(interval_days=d.get("intervalDays", 1))
    if d.get("kind") == "weekly_days":
        return WeeklyDays(
            interval_weeks=d.get("intervalWeeks", 1),
            weekdays=tuple(d.get("weekdays", [])),
        )
    return None


@dataclass
class Subtask:
    id: str
    title: str
    done: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "done": self.done}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Subtask":
        return cls(id=d["id"], title=d.get("title", ""), done=bool(d.get("done", False)))


@dataclass
class CompletionReward:
    """Reward captured at completion time so a reopen can reverse it exactly."""
    xp_gain: int
    stat_gains: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"xpGain": self.xp_gain, "statGains": dict(self.stat_gains)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CompletionReward":
        return cls(xp_gain=d.get("xpGain", 0), stat_gains=dict(d.get("statGains", {})))


@dataclass
class TaskCompletionReward:
    """Returned to callers after a completion, for reward feedback."""
    xp_gain: int
    stat_gains: Dict[str, int]
    level_before: int
    level_after: int

    def to_stored(self) -> CompletionReward:
        return CompletionReward(xp_gain=self.xp_gain, stat_gains=dict(self.stat_gains))


@dataclass
class Task:
    id: str
    title: str
    category_id: str
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    estimate_minutes: int = 30
    deadline_at: Optional[str] = None
    recurrence: Optional[Recurrence] = None
    recurrence_rule: Optional[str] = None  # display label
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    subtasks: List[Subtask] = field(default_factory=list)
    parent_task_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    completion_reward: Optional[CompletionReward] = None

    @property
    def completed_subtasks(self) -> int:
        return sum(1 for s in self.subtasks if s.done)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "categoryId": self.category_id,
            "status": self.status.value,
            "priority": self.priority.value,
            "estimateMinutes": self.estimate_minutes,
            "deadlineAt": self.deadline_at,
            "recurrence": self.recurrence.to_dict() if self.recurrence else None,
            "recurrenceRule": self.recurrence_rule,
            "tags": list(self.tags),
            "notes": self.notes,
            "subtasks": [s.to_dict() for s in self.subtasks],
            "parentTaskId": self.parent_task_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
            "completionReward": self.completion_reward.to_dict() if self.completion_reward else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Task":
        reward = d.get("completionReward")
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            category_id=d.get("categoryId", ""),
            status=TaskStatus(d.get("status", "todo")),
            priority=Priority(d.get("priority", "medium")),
            estimate_minutes=d.get("estimateMinutes", 30),
            deadline_at=d.get("deadlineAt"),
            recurrence=recurrence_from_dict(d.get("recurrence")),
            recurrence_rule=d.get("recurrenceRule"),
            tags=list(d.get("tags", [])),
            notes=d.get("notes", ""),
            subtasks=[Subtask.from_dict(s) for s in d.get("subtasks", [])],
            parent_task_id=d.get("parentTaskId"),
            created_at=d.get("createdAt"),
            updated_at=d.get("updatedAt"),
            completed_at=d.get("completedAt"),
            completion_reward=CompletionReward.from_dict(reward) if reward else None,
        )


@dataclass
class FocusSession:
    id: str
    started_at: str
    duration_min: int
    type: SessionType = SessionType.WORK
    completed: bool = True
    ended_at: Optional[str] = None
    label: Optional[str] = None
    task_id: Optional[str] = None
    category_id: Optional[str] = None

    @property
    def is_rewardable(self) -> bool:
        return self.type == SessionType.WORK and self.completed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "durationMin": self.duration_min,
            "type": self.type.value,
            "completed": self.completed,
            "label": self.label,
            "taskId": self.task_id,
            "categoryId": self.category_id,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FocusSession":
        return cls(
            id=d["id"],
            started_at=d["startedAt"],
            ended_at=d.get("endedAt"),
            duration_min=d.get("durationMin", 0),
            type=SessionType(d.get("type", "work")),
            completed=bool(d.get("completed", True)),
            label=d.get("label"),
            task_id=d.get("taskId"),
            category_id=d.get("categoryId"),
        )


@dataclass
class Category:
    id: str
    name: str
    stat_weights: Dict[str, float] = field(default_factory=dict)
    xp_multiplier: float = 1.0
    is_default: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "statWeights": dict(self.stat_weights),
            "xpMultiplier": self.xp_multiplier,
            "isDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Category":
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            stat_weights=dict(d.get("statWeights", {})),
            xp_multiplier=d.get("xpMultiplier", 1.0),
            is_default=bool(d.get("isDefault", False)),
        )


# --- Quests / achievements ---

@dataclass
class Reward:
    xp: int
    currency: Optional[int] = None
    cosmetic_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"xp": self.xp, "currency": self.currency, "cosmeticId": self.cosmetic_id}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Reward":
        return cls(xp=d.get("xp", 0), currency=d.get("currency"), cosmetic_id=d.get("cosmeticId"))


@dataclass
class Quest:
    id: str
    kind: QuestKind
    title: str
    objective_type: ObjectiveType
    target: int
    reward: Reward
    progress: int = 0
    status: QuestStatus = QuestStatus.ACTIVE
    objective_category_id: Optional[str] = None
    expires_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "objectiveType": self.objective_type.value,
            "objectiveCategoryId": self.objective_category_id,
            "target": self.target,
            "progress": self.progress,
            "reward": self.reward.to_dict(),
            "status": self.status.value,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Quest":
        return cls(
            id=d["id"],
            kind=QuestKind(d["kind"]),
            title=d.get("title", ""),
            objective_type=ObjectiveType(d["objectiveType"]),
            objective_category_id=d.get("objectiveCategoryId"),
            target=d.get("target", 1),
            progress=d.get("progress", 0),
            reward=Reward.from_dict(d.get("reward", {})),
            status=QuestStatus(d.get("status", "active")),
            expires_at=d.get("expiresAt"),
        )


@dataclass
class Achievement:
    """Static catalog entry."""
    id: str
    category: str
    chain: str
    tier: AchievementTier
    title: str
    requirement_type: RequirementType
    requirement_value: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "chain": self.chain,
            "tier": self.tier.value,
            "title": self.title,
            "requirementType": self.requirement_type.value,
            "requirementValue": self.requirement_value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Achievement":
        return cls(
            id=d["id"],
            category=d.get("category", ""),
            chain=d.get("chain", ""),
            tier=AchievementTier(d.get("tier", "bronze")),
            title=d.get("title", ""),
            requirement_type=RequirementType(d["requirementType"]),
            requirement_value=d.get("requirementValue", 1),
        )


@dataclass
class AchievementProgress:
    id: str
    value: int = 0
    unlocked_at: Optional[str] = None  # sticky once set

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "value": self.value, "unlockedAt": self.unlocked_at}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AchievementProgress":
        return cls(id=d["id"], value=d.get("value", 0), unlocked_at=d.get("unlockedAt"))


# --- Analytics ---

@dataclass
class DailyAggregate:
    """Additive per-date projection; updated by signed deltas only."""
    date: str
    focus_minutes: int = 0
    completions: int = 0
    xp_gained: int = 0
    category_focus_minutes: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "focusMinutes": self.focus_minutes,
            "completions": self.completions,
            "xpGained": self.xp_gained,
            "categoryFocusMinutes": dict(self.category_focus_minutes),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DailyAggregate":
        return cls(
            date=d["date"],
            focus_minutes=d.get("focusMinutes", 0),
            completions=d.get("completions", 0),
            xp_gained=d.get("xpGained", 0),
            category_focus_minutes=dict(d.get("categoryFocusMinutes", {})),
        )


# --- Profile / settings ---

@dataclass
class UserProfile:
    user_id: str
    display_name: str = "Hunter"
    title: str = "E-Rank Novice"
    avatar_id: str = "avatar-default"
    cosmetics: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "title": self.title,
            "avatarId": self.avatar_id,
            "cosmetics": list(self.cosmetics),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UserProfile":
        return cls(
            user_id=d["userId"],
            display_name=d.get("displayName", "Hunter"),
            title=d.get("title", ""),
            avatar_id=d.get("avatarId", "avatar-default"),
            cosmetics=list(d.get("cosmetics", [])),
            created_at=d.get("createdAt"),
            updated_at=d.get("updatedAt"),
        )


@dataclass
class TimerSettings:
    work_min: int = 25
    break_min: int = 5
    long_break_min: int = 15
    every_n: int = 4

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workMin": self.work_min,
            "breakMin": self.break_min,
            "longBreakMin": self.long_break_min,
            "everyN": self.every_n,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TimerSettings":
        return cls(
            work_min=d.get("workMin", 25),
            break_min=d.get("breakMin", 5),
            long_break_min=d.get("longBreakMin", 15),
            every_n=d.get("everyN", 4),
        )


@dataclass
class AppSettings:
    timer: TimerSettings = field(default_factory=TimerSettings)
    theme_id: Optional[str] = "neon"
    stamina_enabled: bool = False
    audio_enabled: bool = True
    reduced_motion: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timer": self.timer.to_dict(),
            "themeId": self.theme_id,
            "staminaEnabled": self.stamina_enabled,
            "audioEnabled": self.audio_enabled,
            "reducedMotion": self.reduced_motion,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppSettings":
        return cls(
            timer=TimerSettings.from_dict(d.get("timer", {})),
            theme_id=d.get("themeId"),
            stamina_enabled=bool(d.get("staminaEnabled", False)),
            audio_enabled=bool(d.get("audioEnabled", True)),
            reduced_motion=bool(d.get("reducedMotion", False)),
        )
