from questline.models import Category, CharacterState, Priority
from questline.progression import (
    TaskXpInput,
    apply_stat_gains,
    apply_xp,
    calculate_focus_xp,
    calculate_task_stat_gain,
    calculate_task_xp,
    daily_soft_cap,
    legacy_points_for,
    level_progress,
    normalize_stat_weights,
    prestige,
    remove_xp,
    revert_stat_gains,
    xp_to_next,
)


def _xp(**overrides):
    params = dict(priority=Priority.MEDIUM, deadline_set=False, completed_subtasks=0, estimate_minutes=30)
    params.update(overrides)
    return calculate_task_xp(TaskXpInput(**params))


def test_xp_to_next_grows_with_level():
    assert xp_to_next(1) == 165
    assert xp_to_next(2) == 215
    assert all(xp_to_next(n) < xp_to_next(n + 1) for n in range(1, 60))


def test_daily_soft_cap():
    assert daily_soft_cap(1) == 275
    assert daily_soft_cap(10) == 500


def test_task_xp_baseline():
    assert _xp() == 31


def test_task_xp_increases_with_priority_deadline_and_subtasks():
    assert _xp(priority=Priority.LOW) < _xp(priority=Priority.MEDIUM) < _xp(priority=Priority.HIGH)
    assert _xp(deadline_set=True) > _xp()
    assert _xp(completed_subtasks=2) > _xp()
    # subtask bonus saturates at 5
    assert _xp(completed_subtasks=5) == _xp(completed_subtasks=12)


def test_anti_exploit_penalties_reduce_xp():
    base = _xp()
    assert _xp(estimate_minutes=2) < base
    assert _xp(same_category_count_today=3) < base
    assert _xp(repeated_title_count_24h=2) < base
    assert _xp(daily_xp_before=daily_soft_cap(1) + 1) < base
    assert _xp(daily_xp_before=daily_soft_cap(1)) == base


def test_task_xp_never_below_one():
    assert _xp(
        priority=Priority.LOW,
        estimate_minutes=1,
        same_category_count_today=50,
        repeated_title_count_24h=30,
        daily_xp_before=10_000,
    ) == 1


def test_focus_xp():
    assert calculate_focus_xp(25, 0) == 30
    assert calculate_focus_xp(25, 1) == 31
    # streak bonus caps at 15%
    assert calculate_focus_xp(100, 5) == calculate_focus_xp(100, 40)
    assert calculate_focus_xp(0, 0) == 1


def test_apply_xp_single_level_up_with_overflow():
    state = apply_xp(CharacterState(), 200)
    assert state.level == 2
    assert state.xp_current == 35
    assert state.xp_lifetime == 200


def test_apply_xp_multiple_level_ups():
    state = apply_xp(CharacterState(), 165 + 215 + 20)
    assert state.level == 3
    assert state.xp_current == 20


def test_apply_xp_stops_at_season_cap():
    state = apply_xp(CharacterState(level=60, season_cap=60), 10_000)
    assert state.level == 60
    assert state.xp_current == 10_000


def test_remove_xp_inverts_apply_xp():
    start = CharacterState(level=3, xp_current=40, xp_lifetime=420)
    assert remove_xp(apply_xp(start, 500), 500) == start


def test_remove_xp_floors_at_level_one():
    state = remove_xp(CharacterState(level=1, xp_current=10, xp_lifetime=10), 50)
    assert state.level == 1
    assert state.xp_current == 0
    assert state.xp_lifetime == 0


def test_normalize_stat_weights_drops_invalid_entries():
    weights = dict(normalize_stat_weights({"strength": 3, "vitality": 1, "social": -1, "intellect": float("nan")}))
    assert weights == {"strength": 0.75, "vitality": 0.25}
    assert normalize_stat_weights({}) == []
    assert normalize_stat_weights(None) == []


def test_stat_gain_remainder_goes_to_primary_stat():
    learning = Category("learning", "Learning", {"intellect": 0.8, "discipline": 0.2})
    assert calculate_task_stat_gain(31, Priority.MEDIUM, learning) == {"intellect": 1}

    training = Category("training", "Training", {"strength": 0.6, "vitality": 0.4})
    assert calculate_task_stat_gain(100, Priority.HIGH, training, level_ups=1) == {"strength": 3, "vitality": 1}


def test_stat_gain_without_weights_goes_to_discipline():
    assert calculate_task_stat_gain(31, Priority.MEDIUM, None) == {"discipline": 1}
    assert calculate_task_stat_gain(31, Priority.MEDIUM, Category("x", "X")) == {"discipline": 1}


def test_stat_gain_points_are_bounded():
    gains = calculate_task_stat_gain(10_000, Priority.HIGH, None, level_ups=9)
    assert gains == {"discipline": 6}


def test_revert_stat_gains_floors_at_one():
    state = apply_stat_gains(CharacterState(), {"strength": 2})
    assert state.stats["strength"] == 7
    assert revert_stat_gains(state, {"strength": 2}).stats["strength"] == 5
    assert revert_stat_gains(state, {"strength": 50}).stats["strength"] == 1


def test_legacy_points():
    assert legacy_points_for(20) == 0
    assert legacy_points_for(24) == 0
    assert legacy_points_for(25) == 1
    assert legacy_points_for(60) == 8


def test_prestige_resets_level_and_awards_legacy_points():
    state = CharacterState(level=35, xp_current=100, xp_lifetime=9000, prestige_rank=1, legacy_points=2)
    reset = prestige(state)
    assert reset.level == 1
    assert reset.xp_current == 0
    assert reset.prestige_rank == 2
    assert reset.legacy_points == 5
    assert reset.xp_lifetime == 9000
    assert reset.stats == state.stats


def test_level_progress_ratio():
    assert level_progress(CharacterState()) == 0.0
    assert level_progress(CharacterState(level=60, season_cap=60, xp_current=10**6)) == 1.0
