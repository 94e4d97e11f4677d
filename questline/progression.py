"""
Progression formulas for Questline.

Pure functions: XP awards, level thresholds, stat gains and prestige.
Nothing in here touches storage; callers thread CharacterState values
through and persist the result.
"""
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from questline.models import Category, CharacterState, Priority, StatKey
from questline.utils import clamp, round_half_up

PRIORITY_BONUS: Dict[Priority, int] = {
    Priority.LOW: 0,
    Priority.MEDIUM: 8,
    Priority.HIGH: 16,
}

PRIORITY_STAT_MULTIPLIER: Dict[Priority, float] = {
    Priority.LOW: 0.85,
    Priority.MEDIUM: 1.0,
    Priority.HIGH: 1.15,
}

FALLBACK_STAT = StatKey.DISCIPLINE.value


@dataclass
class TaskXpInput:
    """Everything calculate_task_xp needs to price one completion."""
    priority: Priority
    deadline_set: bool
    completed_subtasks: int
    estimate_minutes: int
    same_category_count_today: int = 0
    repeated_title_count_24h: int = 0
    daily_xp_before: int = 0
    level: int = 1
    novelty_factor: float = 1.0
    category_multiplier: float = 1.0


def xp_to_next(level: int) -> int:
    """XP needed to go from `level` to `level + 1`."""
    return round_half_up(120 + 35 * level + 10 * math.pow(level, 1.35))


def daily_soft_cap(level: int) -> int:
    """Daily XP after which task awards are damped."""
    return 250 + 25 * level


def calculate_task_xp(inp: TaskXpInput) -> int:
    """
    Price a task completion.

    Anti-exploit penalties are multiplicative: trivial estimates, repeated
    categories today, duplicate titles and XP beyond the daily soft cap all
    shrink the award. The result is never below 1.
    """
    base = (
        20
        + PRIORITY_BONUS[Priority(inp.priority)]
        + (12 if inp.deadline_set else 0)
        + min(10, inp.completed_subtasks * 2)
    )

    duration_factor = clamp(math.log(1 + inp.estimate_minutes / 15), 0.6, 1.8)

    xp = base * duration_factor * inp.novelty_factor * inp.category_multiplier

    if inp.estimate_minutes < 5:
        xp *= 0.35

    xp *= 1 / (1 + 0.12 * inp.same_category_count_today)
    xp *= math.pow(0.8, inp.repeated_title_count_24h)

    if inp.daily_xp_before > daily_soft_cap(inp.level):
        xp *= 0.4

    return max(1, round_half_up(xp))


def calculate_focus_xp(work_minutes: int, streak_sessions: int = 0) -> int:
    streak_factor = 1 + min(0.15, streak_sessions * 0.03)
    return max(1, round_half_up(work_minutes * 1.2 * streak_factor))


def apply_xp(state: CharacterState, xp_gain: int) -> CharacterState:
    """
    Add XP, levelling up as many times as the gain allows.

    Levelling stops at the season cap; any excess stays in xp_current until
    prestige. Lifetime XP always grows by the full gain.
    """
    level = state.level
    xp_current = state.xp_current + xp_gain

    while xp_current >= xp_to_next(level) and level < state.season_cap:
        xp_current -= xp_to_next(level)
        level += 1

    return replace(
        state,
        level=level,
        xp_current=xp_current,
        xp_lifetime=state.xp_lifetime + xp_gain,
    )


def remove_xp(state: CharacterState, xp_loss: int) -> CharacterState:
    """
    Take XP back, de-levelling as needed.

    Only an exact inverse of apply_xp when nothing else was earned in
    between; the floor at level 1 / 0 XP absorbs any overshoot.
    """
    loss = max(0, round_half_up(xp_loss))
    level = state.level
    xp_current = state.xp_current - loss

    while xp_current < 0 and level > 1:
        level -= 1
        xp_current += xp_to_next(level)

    if xp_current < 0:
        xp_current = 0

    return replace(
        state,
        level=level,
        xp_current=xp_current,
        xp_lifetime=max(0, state.xp_lifetime - loss),
    )


def normalize_stat_weights(weights: Optional[Dict[str, float]]) -> List[Tuple[str, float]]:
    """Keep positive finite weights and rescale them to sum to 1."""
    entries = [
        (stat, float(value))
        for stat, value in (weights or {}).items()
        if isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    ]
    total = sum(value for _, value in entries)
    if total <= 0:
        return []
    return [(stat, value / total) for stat, value in entries]


def calculate_task_stat_gain(
    xp_gain: int,
    priority: Priority,
    category: Optional[Category] = None,
    level_ups: int = 0,
) -> Dict[str, int]:
    """
    Turn an XP award into stat points spread over the category's weights.

    Rounding loss goes to the heaviest stat; a category without usable
    weights puts everything into discipline.
    """
    scaled_points = (xp_gain / 36) * PRIORITY_STAT_MULTIPLIER[Priority(priority)]
    base_points = clamp(round_half_up(scaled_points), 1, 4)
    total_points = base_points + clamp(level_ups, 0, 2)

    weights = normalize_stat_weights(category.stat_weights if category else None)
    if not weights:
        return {FALLBACK_STAT: total_points}

    gains: Dict[str, int] = {}
    allocated = 0
    for stat, weight in weights:
        points = math.floor(total_points * weight)
        if points <= 0:
            continue
        gains[stat] = gains.get(stat, 0) + points
        allocated += points

    remainder = total_points - allocated
    if remainder > 0:
        primary = sorted(weights, key=lambda entry: -entry[1])[0][0]
        gains[primary] = gains.get(primary, 0) + remainder

    return gains


def apply_stat_gains(state: CharacterState, gains: Dict[str, int]) -> CharacterState:
    stats = dict(state.stats)
    for stat, delta in gains.items():
        if not delta or delta <= 0:
            continue
        stats[stat] = stats.get(stat, 0) + round_half_up(delta)
    return replace(state, stats=stats)


def revert_stat_gains(state: CharacterState, gains: Dict[str, int]) -> CharacterState:
    # Stats never drop below 1; a partial reversal clamps silently.
    stats = dict(state.stats)
    for stat, delta in gains.items():
        if not delta or delta <= 0:
            continue
        stats[stat] = max(1, stats.get(stat, 1) - round_half_up(delta))
    return replace(state, stats=stats)


def legacy_points_for(level: int) -> int:
    return max(0, (level - 20) // 5)


def prestige(state: CharacterState) -> CharacterState:
    """
    Seasonal reset: back to level 1 with zero XP, one rank higher.

    Legacy points come from the level held before the reset. Stats and
    lifetime XP carry over.
    """
    return replace(
        state,
        level=1,
        xp_current=0,
        prestige_rank=state.prestige_rank + 1,
        legacy_points=state.legacy_points + legacy_points_for(state.level),
    )


def level_progress(state: CharacterState) -> float:
    """Fill ratio (0..1) of the current level bar."""
    threshold = xp_to_next(state.level)
    return clamp(state.xp_current / threshold, 0.0, 1.0)
