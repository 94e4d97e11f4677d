"""
Streak tracking: consecutive calendar days with qualifying activity.

Task and focus streaks are independent counters over the same rule.
"""
from dataclasses import replace
from datetime import date
from typing import Optional

from questline.models import StreakState


def update_day_streak(current: int, last_day: Optional[str], today: str) -> int:
    """
    Next streak value for activity on `today` (yyyy-MM-dd).

    Same day keeps the count, the next day extends it, anything else
    (a gap or a date before last_day) starts over at 1.
    """
    if not last_day:
        return 1

    delta = (date.fromisoformat(today) - date.fromisoformat(last_day)).days
    if delta == 0:
        return current
    if delta == 1:
        return current + 1
    return 1


def update_task_streak(streak: StreakState, today: str) -> StreakState:
    return replace(
        streak,
        task_days=update_day_streak(streak.task_days, streak.last_task_day, today),
        last_task_day=today,
    )


def update_focus_streak(streak: StreakState, today: str) -> StreakState:
    return replace(
        streak,
        focus_days=update_day_streak(streak.focus_days, streak.last_focus_day, today),
        last_focus_day=today,
    )
