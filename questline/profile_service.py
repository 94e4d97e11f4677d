"""
Profile, settings, category and prestige operations.
"""
from dataclasses import replace
from typing import Any, Dict, Optional

from questline.event_sourcing import (
    CategoryCreatedPayload,
    EventType,
    PrestigeTriggeredPayload,
    SettingsUpdatedPayload,
    append_event,
)
from questline.logger import get_logger
from questline.models import AppSettings, Category, CharacterState, TimerSettings
from questline.progression import legacy_points_for, prestige
from questline.storage import Database
from questline.utils import make_id

logger = get_logger("profile_service")


class ProfileService:
    """Application service for the profile, settings and character resets."""

    def __init__(self, db: Database):
        self.db = db

    def _user_id(self) -> Optional[str]:
        profile = self.db.user_profile.get_first()
        return profile.user_id if profile else None

    def update_settings(self, patch: Dict[str, Any]) -> Optional[AppSettings]:
        """Shallow-merge a settings patch; a nested `timer` dict is merged too."""
        existing = self.db.settings.get_first()
        if existing is None:
            return None

        changes = dict(patch)
        timer_patch = changes.pop("timer", None) or {}
        updated = replace(existing, **changes, timer=replace(existing.timer, **timer_patch))
        self.db.settings.put(updated)

        user_id = self._user_id()
        if user_id:
            keys = sorted(list(changes) + (["timer"] if timer_patch else []))
            append_event(self.db.event_log, user_id, EventType.SETTINGS_UPDATED,
                         SettingsUpdatedPayload(keys=keys))
        return updated

    def update_timer_settings(self, patch: Dict[str, Any]) -> Optional[TimerSettings]:
        updated = self.update_settings({"timer": patch})
        return updated.timer if updated else None

    def reset_lifetime_xp(self) -> Optional[CharacterState]:
        character = self.db.character.get_first()
        if character is None:
            return None
        updated = replace(character, xp_lifetime=0)
        self.db.character.put(updated)
        return updated

    def prestige_character(self) -> Optional[CharacterState]:
        """
        Seasonal reset, allowed only at the season cap.

        Returns the new character, or None when the cap has not been reached.
        """
        user_id = self._user_id()
        character = self.db.character.get_first()
        if user_id is None or character is None:
            return None
        if character.level < character.season_cap:
            logger.debug(f"prestige ignored: level {character.level} < cap {character.season_cap}")
            return None

        updated = prestige(character)
        self.db.character.put(updated)
        append_event(self.db.event_log, user_id, EventType.PRESTIGE_TRIGGERED, PrestigeTriggeredPayload(
            level_before=character.level,
            prestige_rank=updated.prestige_rank,
            legacy_points_gained=legacy_points_for(character.level),
        ))
        logger.info(f"prestige rank {updated.prestige_rank} reached")
        return updated

    def create_category(
        self,
        name: str,
        stat_weights: Optional[Dict[str, float]] = None,
        xp_multiplier: float = 1.0,
    ) -> Optional[Category]:
        user_id = self._user_id()
        if user_id is None:
            return None

        category = Category(
            id=make_id(),
            name=name,
            stat_weights=dict(stat_weights or {}),
            xp_multiplier=max(0.0, float(xp_multiplier)),
        )
        self.db.categories.put(category)
        append_event(self.db.event_log, user_id, EventType.CATEGORY_CREATED,
                     CategoryCreatedPayload(category_id=category.id))
        return category
