"""
Social snapshot: a privacy-safe summary of recent progress.

The snapshot carries aggregate numbers only. Task titles, notes, tags and
free-form event payload fields never leave this module; the output model
forbids unknown fields so nothing extra can be attached to it.
"""
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from questline.config_manager import config
from questline.event_sourcing import AppEvent, EventType
from questline.models import CharacterState, DailyAggregate, Quest, QuestStatus, StreakState
from questline.storage import Database
from questline.utils import now_local, parse_iso, round_half_up


class SnapshotModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CategoryShare(SnapshotModel):
    category: str
    percentage: int


class SocialSnapshot(SnapshotModel):
    level: int
    prestige_rank: int
    xp_today: int
    xp_week: int
    focus_minutes_today: int
    focus_minutes_week: int
    completions_today: int
    completions_week: int
    task_streak: int
    focus_streak: int
    top_categories_week: List[CategoryShare]
    last_badge_unlocked: Optional[str] = None
    active_quest_progress_percent: int

    def to_dict(self) -> Dict:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass
class SnapshotRange:
    start: str  # ISO-8601, inclusive
    end: str

    def contains(self, timestamp: str) -> bool:
        value = parse_iso(timestamp)
        return parse_iso(self.start) <= value <= parse_iso(self.end)


@dataclass
class SnapshotInput:
    range: SnapshotRange
    character: Optional[CharacterState] = None
    streaks: Optional[StreakState] = None
    daily: List[DailyAggregate] = field(default_factory=list)
    events: List[AppEvent] = field(default_factory=list)
    quests: List[Quest] = field(default_factory=list)


def today_range(now: Optional[datetime] = None) -> SnapshotRange:
    current = now_local(now)
    start = datetime.combine(current.date(), time.min).astimezone()
    end = datetime.combine(current.date(), time.max).astimezone()
    return SnapshotRange(start=start.isoformat(), end=end.isoformat())


def _whole_percentages(totals: Dict[str, int]) -> Dict[str, int]:
    """Largest-remainder split of 100 over the categories; the parts sum to 100."""
    grand_total = sum(totals.values())
    if grand_total <= 0:
        return {category: 0 for category in totals}

    shares = {c: minutes * 100 // grand_total for c, minutes in totals.items()}
    by_remainder = sorted(totals, key=lambda c: -(totals[c] * 100 % grand_total))
    for category in by_remainder[:100 - sum(shares.values())]:
        shares[category] += 1
    return shares


def _top_categories(rows: List[DailyAggregate], limit: int) -> List[CategoryShare]:
    totals: Dict[str, int] = {}
    for row in rows:
        for category, minutes in row.category_focus_minutes.items():
            totals[category] = totals.get(category, 0) + minutes

    percentages = _whole_percentages(totals)
    ranked = sorted(totals.items(), key=lambda item: -item[1])[:limit]
    return [CategoryShare(category=category, percentage=percentages[category]) for category, _ in ranked]


def _last_badge(events: List[AppEvent], window: SnapshotRange) -> Optional[str]:
    badges = [
        e for e in events
        if e.event_type == EventType.BADGE_UNLOCKED and window.contains(e.occurred_at)
    ]
    if not badges:
        return None
    latest = max(badges, key=lambda e: e.occurred_at)
    # only the achievement id is exposed, never the rest of the payload
    return getattr(latest.payload, "achievement_id", None)


def _quest_progress_percent(quests: List[Quest]) -> int:
    if not quests:
        return 0
    ratio_sum = sum(min(1.0, q.progress / max(1, q.target)) for q in quests)
    return round_half_up(ratio_sum * (100 / len(quests)))


def build_snapshot_from_data(data: SnapshotInput, now: Optional[datetime] = None) -> SocialSnapshot:
    current = now_local(now).date()
    today = current.isoformat()
    week_from = (current - timedelta(days=config.SNAPSHOT_WINDOW_DAYS - 1)).isoformat()

    today_row = next((d for d in data.daily if d.date == today), None)
    week_rows = [d for d in data.daily if week_from <= d.date <= today]

    character = data.character
    streaks = data.streaks
    return SocialSnapshot(
        level=character.level if character else 1,
        prestige_rank=character.prestige_rank if character else 0,
        xp_today=today_row.xp_gained if today_row else 0,
        xp_week=sum(d.xp_gained for d in week_rows),
        focus_minutes_today=today_row.focus_minutes if today_row else 0,
        focus_minutes_week=sum(d.focus_minutes for d in week_rows),
        completions_today=today_row.completions if today_row else 0,
        completions_week=sum(d.completions for d in week_rows),
        task_streak=streaks.task_days if streaks else 0,
        focus_streak=streaks.focus_days if streaks else 0,
        top_categories_week=_top_categories(week_rows, config.TOP_CATEGORY_LIMIT),
        last_badge_unlocked=_last_badge(data.events, data.range),
        active_quest_progress_percent=_quest_progress_percent(data.quests),
    )


def build_snapshot(
    db: Database,
    window: Optional[SnapshotRange] = None,
    now: Optional[datetime] = None,
) -> SocialSnapshot:
    """Load character, streaks, aggregates, events and active quests, then summarize."""
    return build_snapshot_from_data(
        SnapshotInput(
            range=window or today_range(now),
            character=db.character.get_first(),
            streaks=db.streaks.get_first(),
            daily=db.analytics_daily.list_all(),
            events=db.event_log.list_all(),
            quests=[q for q in db.quests.list_all() if q.status == QuestStatus.ACTIVE],
        ),
        now=now,
    )
