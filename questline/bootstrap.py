"""
First-launch bootstrap: seed empty tables and make sure a profile exists.
Safe to run on every start; populated tables are left alone.
"""
from typing import Optional

from questline.config_manager import config
from questline.logger import get_logger
from questline.models import CharacterState, StreakState, UserProfile, default_stats
from questline.seed import (
    DEFAULT_CATEGORIES,
    default_achievements,
    default_quest_templates,
    default_settings,
)
from questline.storage import Database
from questline.utils import make_id, now_iso

logger = get_logger("bootstrap")


def base_character() -> CharacterState:
    return CharacterState(
        level=1,
        xp_current=0,
        xp_lifetime=0,
        season_cap=config.SEASON_CAP,
        prestige_rank=0,
        legacy_points=0,
        stats=default_stats(config.BASE_STAT_VALUE),
    )


def bootstrap_data(db: Database) -> None:
    if db.categories.count() == 0:
        for category in DEFAULT_CATEGORIES:
            db.categories.put(category)
        logger.info(f"seeded {len(DEFAULT_CATEGORIES)} categories")

    if db.achievements.count() == 0:
        for achievement in default_achievements():
            db.achievements.put(achievement)

    if db.quests.count() == 0:
        for quest in default_quest_templates():
            db.quests.put(quest)

    if db.settings.count() == 0:
        db.settings.put(default_settings())

    if db.character.count() == 0:
        db.character.put(base_character())
        logger.info("character created")

    if db.streaks.count() == 0:
        db.streaks.put(StreakState())


def ensure_user_profile(db: Database, display_name: Optional[str] = None) -> UserProfile:
    existing = db.user_profile.get_first()
    if existing:
        return existing

    now = now_iso()
    profile = UserProfile(
        user_id=make_id(),
        display_name=display_name or "Hunter",
        title="E-Rank Novice",
        avatar_id="avatar-default",
        cosmetics=["theme-neon", "frame-base"],
        created_at=now,
        updated_at=now,
    )
    db.user_profile.put(profile)
    return profile
