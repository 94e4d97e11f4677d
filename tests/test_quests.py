from questline.models import DailyAggregate, ObjectiveType, QuestKind, QuestStatus
from questline.quests import (
    QuestSignals,
    generate_daily_quests,
    generate_weekly_quests,
    rank_neglected_stats,
)


def test_daily_quests_shape():
    quests = generate_daily_quests(QuestSignals())
    assert [q.id for q in quests] == ["dq-focus", "dq-complete", "dq-balance"]
    assert all(q.kind == QuestKind.DAILY for q in quests)
    assert all(q.progress == 0 and q.status == QuestStatus.ACTIVE for q in quests)
    assert [q.reward.xp for q in quests] == [55, 45, 60]


def test_daily_balance_quest_targets_first_neglected_stat():
    quests = generate_daily_quests(QuestSignals(neglected_stats=["social", "vitality"]))
    balance = quests[2]
    assert balance.title == "Reinforce social"
    assert balance.objective_type == ObjectiveType.CATEGORY_BALANCE
    assert balance.target == 1


def test_daily_balance_quest_falls_back_to_discipline():
    assert generate_daily_quests(QuestSignals())[2].title == "Reinforce discipline"


def test_daily_focus_target_adapts_to_recent_focus():
    rows = [DailyAggregate(date=f"2026-03-{d:02d}", focus_minutes=100) for d in range(1, 15)]
    focus = generate_daily_quests(QuestSignals(last_14_days=rows))[0]
    assert focus.target == 80

    quiet = [DailyAggregate(date="2026-03-01", focus_minutes=10)]
    assert generate_daily_quests(QuestSignals(last_14_days=quiet))[0].target == 25


def test_weekly_quests():
    focus, sweep = generate_weekly_quests()
    assert (focus.id, focus.target, focus.reward.xp, focus.reward.currency) == ("wq-focus-200", 200, 300, 120)
    assert (sweep.id, sweep.target, sweep.reward.cosmetic_id) == ("wq-complete-20", 20, "frame-carbon")


def test_rank_neglected_stats_lowest_first_with_stable_ties():
    stats = {"strength": 9, "vitality": 4, "intellect": 4, "creativity": 7, "discipline": 5, "social": 8}
    assert rank_neglected_stats(stats) == [
        "vitality", "intellect", "discipline", "creativity", "social", "strength",
    ]
    assert rank_neglected_stats(stats, limit=1) == ["vitality"]
