from questline.models import StreakState
from questline.streaks import update_day_streak, update_focus_streak, update_task_streak


def test_first_activity_starts_streak():
    assert update_day_streak(0, None, "2026-03-01") == 1


def test_streak_sequence():
    streak = StreakState()
    for day in ("2026-03-01", "2026-03-02", "2026-03-03"):
        streak = update_task_streak(streak, day)
    assert streak.task_days == 3
    assert streak.last_task_day == "2026-03-03"

    streak = update_task_streak(streak, "2026-03-05")
    assert streak.task_days == 1


def test_same_day_keeps_count():
    streak = update_task_streak(StreakState(task_days=4, last_task_day="2026-03-01"), "2026-03-01")
    assert streak.task_days == 4


def test_streak_across_month_boundary():
    assert update_day_streak(2, "2026-02-28", "2026-03-01") == 3


def test_date_before_last_day_resets():
    assert update_day_streak(5, "2026-03-10", "2026-03-09") == 1


def test_task_and_focus_streaks_are_independent():
    streak = update_focus_streak(StreakState(task_days=3, last_task_day="2026-03-01"), "2026-03-02")
    assert streak.focus_days == 1
    assert streak.task_days == 3
