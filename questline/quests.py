"""
Quest generation.

Daily quests adapt to recent focus volume and the character's weakest stat;
weekly quests are fixed templates. Generated quests start at progress 0 and
are advanced only by the sync pass in questline.projections.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from questline.models import (
    STAT_KEYS,
    DailyAggregate,
    ObjectiveType,
    Quest,
    QuestKind,
    QuestStatus,
    Reward,
    StatKey,
)
from questline.utils import round_half_up

DEFAULT_NEGLECTED_STAT = StatKey.DISCIPLINE.value
MIN_DAILY_FOCUS_TARGET = 25


@dataclass
class QuestSignals:
    last_14_days: List[DailyAggregate] = field(default_factory=list)
    neglected_stats: List[str] = field(default_factory=list)  # weakest first


def generate_daily_quests(signals: QuestSignals) -> List[Quest]:
    total_focus = sum(d.focus_minutes for d in signals.last_14_days)
    avg_focus = total_focus / max(1, len(signals.last_14_days))
    neglected = signals.neglected_stats[0] if signals.neglected_stats else DEFAULT_NEGLECTED_STAT
    neglected = getattr(neglected, "value", neglected)

    return [
        Quest(
            id="dq-focus",
            kind=QuestKind.DAILY,
            title="Shadow Concentration",
            objective_type=ObjectiveType.FOCUS_MINUTES,
            target=max(MIN_DAILY_FOCUS_TARGET, round_half_up(avg_focus * 0.8)),
            reward=Reward(xp=55),
            status=QuestStatus.ACTIVE,
        ),
        Quest(
            id="dq-complete",
            kind=QuestKind.DAILY,
            title="Clear the Gate",
            objective_type=ObjectiveType.TASK_COMPLETIONS,
            target=3,
            reward=Reward(xp=45),
            status=QuestStatus.ACTIVE,
        ),
        Quest(
            id="dq-balance",
            kind=QuestKind.DAILY,
            title=f"Reinforce {neglected}",
            objective_type=ObjectiveType.CATEGORY_BALANCE,
            target=1,
            reward=Reward(xp=60),
            status=QuestStatus.ACTIVE,
        ),
    ]


def generate_weekly_quests() -> List[Quest]:
    return [
        Quest(
            id="wq-focus-200",
            kind=QuestKind.WEEKLY,
            title="Deep Work Marathon",
            objective_type=ObjectiveType.FOCUS_MINUTES,
            target=200,
            reward=Reward(xp=300, currency=120),
        ),
        Quest(
            id="wq-complete-20",
            kind=QuestKind.WEEKLY,
            title="Hunter's Sweep",
            objective_type=ObjectiveType.TASK_COMPLETIONS,
            target=20,
            reward=Reward(xp=280, cosmetic_id="frame-carbon"),
        ),
    ]


def rank_neglected_stats(stats: Dict[str, int], limit: int = len(STAT_KEYS)) -> List[str]:
    """Stat keys ordered lowest value first; ties keep the canonical order."""
    order: Sequence[str] = STAT_KEYS
    ranked = sorted(order, key=lambda key: (stats.get(key, 0), order.index(key)))
    return ranked[:limit]
