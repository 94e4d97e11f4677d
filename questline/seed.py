"""
Default catalog consumed by bootstrap: categories, achievements, long-running
quest templates and settings.
"""
from typing import List

from questline.models import (
    Achievement,
    AchievementTier,
    AppSettings,
    Category,
    ObjectiveType,
    Quest,
    QuestKind,
    RequirementType,
    Reward,
)

DEFAULT_CATEGORIES: List[Category] = [
    Category("training", "Training", {"strength": 0.6, "vitality": 0.4}, 1.0, True),
    Category("learning", "Learning", {"intellect": 0.8, "discipline": 0.2}, 1.05, True),
    Category("creativity", "Creativity", {"creativity": 0.8, "intellect": 0.2}, 1.05, True),
    Category("social", "Social", {"social": 0.8, "discipline": 0.2}, 1.0, True),
    Category("health", "Health", {"vitality": 0.8, "discipline": 0.2}, 1.1, True),
    Category("admin", "Admin", {"discipline": 0.7, "intellect": 0.3}, 0.95, True),
]

ACHIEVEMENT_CATEGORIES = (
    "consistency",
    "deep_work",
    "balance",
    "mastery",
    "exploration",
    "recovery",
    "social",
    "health",
)
ACHIEVEMENT_CHAINS = ("path-a", "path-b")
TIER_THRESHOLDS = (
    (AchievementTier.BRONZE, 10),
    (AchievementTier.SILVER, 40),
    (AchievementTier.GOLD, 120),
    (AchievementTier.LEGENDARY, 300),
)


def _requirement_for(category: str) -> RequirementType:
    if category == "deep_work":
        return RequirementType.FOCUS_MINUTES_TOTAL
    if category == "consistency":
        return RequirementType.TASK_STREAK
    return RequirementType.TASKS_COMPLETED


def default_achievements() -> List[Achievement]:
    return [
        Achievement(
            id=f"{category}-{chain}-{tier.value}",
            category=category,
            chain=chain,
            tier=tier,
            title=f"{category.replace('_', ' ')} {chain.upper()} {tier.value.upper()}",
            requirement_type=_requirement_for(category),
            requirement_value=threshold,
        )
        for category in ACHIEVEMENT_CATEGORIES
        for chain in ACHIEVEMENT_CHAINS
        for tier, threshold in TIER_THRESHOLDS
    ]


def default_quest_templates() -> List[Quest]:
    return [
        Quest(
            id="story-ch1",
            kind=QuestKind.STORYLINE,
            title="Chapter 1: Awakening",
            objective_type=ObjectiveType.TASK_COMPLETIONS,
            target=15,
            reward=Reward(xp=500, cosmetic_id="title-awakened"),
        ),
        Quest(
            id="boss-project-ascension",
            kind=QuestKind.BOSS,
            title="Boss Fight: Project Ascension (5 phases)",
            objective_type=ObjectiveType.TASK_COMPLETIONS,
            target=25,
            reward=Reward(xp=800, cosmetic_id="frame-neon-aegis"),
        ),
    ]


def default_settings() -> AppSettings:
    return AppSettings()
