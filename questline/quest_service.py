"""
Quest application service: manual quests and the daily/weekly refresh.
"""
from dataclasses import replace
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional

from questline.config_manager import config
from questline.event_sourcing import (
    EventType,
    QuestCompletedPayload,
    QuestGeneratedPayload,
    append_event,
)
from questline.logger import get_logger
from questline.models import ObjectiveType, Quest, QuestKind, QuestStatus, Reward
from questline.projections import sync_quest_progress
from questline.quests import (
    QuestSignals,
    generate_daily_quests,
    generate_weekly_quests,
    rank_neglected_stats,
)
from questline.storage import Database
from questline.utils import make_id, now_local, round_half_up

logger = get_logger("quest_service")


def _end_of_day(day) -> str:
    return datetime.combine(day, time.max).astimezone().isoformat()


class QuestService:
    """Application service for quest operations."""

    def __init__(self, db: Database):
        self.db = db

    def _user_id(self) -> Optional[str]:
        profile = self.db.user_profile.get_first()
        return profile.user_id if profile else None

    def create_quest(
        self,
        title: str,
        objective_type: ObjectiveType,
        target: float,
        reward_xp: float,
        kind: QuestKind = QuestKind.STORYLINE,
        objective_category_id: Optional[str] = None,
    ) -> Optional[Quest]:
        user_id = self._user_id()
        if user_id is None:
            return None

        quest = Quest(
            id=make_id(),
            kind=QuestKind(kind),
            title=title,
            objective_type=ObjectiveType(objective_type),
            objective_category_id=objective_category_id,
            target=max(1, round_half_up(target)),
            reward=Reward(xp=max(1, round_half_up(reward_xp))),
        )
        self._add(user_id, quest)
        sync_quest_progress(self.db, user_id)
        return self.db.quests.get(quest.id)

    def _add(self, user_id: str, quest: Quest) -> None:
        self.db.quests.put(quest)
        append_event(self.db.event_log, user_id, EventType.QUEST_GENERATED, QuestGeneratedPayload(
            quest_id=quest.id,
            objective_type=quest.objective_type.value,
            target=quest.target,
        ))

    def update_quest(self, quest_id: str, patch: Dict[str, Any]) -> Optional[Quest]:
        user_id = self._user_id()
        if user_id is None:
            return None
        quest = self.db.quests.get(quest_id)
        if quest is None:
            return None

        changes = {k: v for k, v in patch.items() if k != "id"}
        for key, enum_type in (
            ("kind", QuestKind), ("objective_type", ObjectiveType), ("status", QuestStatus)
        ):
            if key in changes:
                changes[key] = enum_type(changes[key])
        changes["target"] = max(1, round_half_up(changes.get("target", quest.target) or 1))

        updated = replace(quest, **changes)
        self.db.quests.put(updated)
        if updated.status == QuestStatus.COMPLETE:
            append_event(self.db.event_log, user_id, EventType.QUEST_COMPLETED,
                         QuestCompletedPayload(quest_id=updated.id))
        return updated

    def _replace_kind(self, user_id: str, kind: QuestKind, quests: List[Quest]) -> List[Quest]:
        for stale in [q for q in self.db.quests.list_all() if q.kind == kind]:
            self.db.quests.delete(stale.id)
        for quest in quests:
            self._add(user_id, quest)
        sync_quest_progress(self.db, user_id)
        return [self.db.quests.get(q.id) for q in quests]

    def refresh_daily_quests(self, now: Optional[datetime] = None) -> List[Quest]:
        """
        Regenerate the daily quests from recent focus and the weakest stat.

        Signals: the most recent QUEST_SIGNAL_WINDOW_DAYS aggregate rows and
        the character's stats ranked lowest first. Quests expire at the end
        of the current day.
        """
        user_id = self._user_id()
        if user_id is None:
            return []

        recent = self.db.analytics_daily.list_ordered_by("date", descending=True)
        character = self.db.character.get_first()
        signals = QuestSignals(
            last_14_days=recent[:config.QUEST_SIGNAL_WINDOW_DAYS],
            neglected_stats=rank_neglected_stats(character.stats) if character else [],
        )
        expires_at = _end_of_day(now_local(now).date())
        quests = [replace(q, expires_at=expires_at) for q in generate_daily_quests(signals)]
        logger.info(f"daily quests refreshed ({len(quests)})")
        return self._replace_kind(user_id, QuestKind.DAILY, quests)

    def refresh_weekly_quests(self, now: Optional[datetime] = None) -> List[Quest]:
        """Regenerate the weekly quests; they expire at the end of Sunday."""
        user_id = self._user_id()
        if user_id is None:
            return []

        today = now_local(now).date()
        week_end = today + timedelta(days=6 - today.weekday())
        quests = [replace(q, expires_at=_end_of_day(week_end)) for q in generate_weekly_quests()]
        return self._replace_kind(user_id, QuestKind.WEEKLY, quests)

    def active_quests(self) -> List[Quest]:
        return [q for q in self.db.quests.list_all() if q.status == QuestStatus.ACTIVE]
