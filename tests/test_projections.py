from datetime import datetime, timedelta

from questline.event_sourcing import EventType
from questline.models import (
    Achievement,
    AchievementTier,
    CharacterState,
    FocusSession,
    ObjectiveType,
    QuestStatus,
    RequirementType,
    SessionType,
    Task,
)
from questline.projections import (
    record_focus_session_end,
    record_task_completion,
    replay_daily_aggregates,
    sync_achievement_progress,
    sync_progress,
    sync_quest_progress,
    upsert_daily_aggregate,
)
from questline.quest_service import QuestService
from questline.storage import memory_database
from questline.task_service import TaskService

NOW = datetime(2026, 3, 10, 12, 0).astimezone()
TODAY = "2026-03-10"


def _events(db, event_type):
    return [e for e in db.event_log.list_all() if e.event_type == event_type]


def _session(minutes, session_type=SessionType.WORK, completed=True, category_id="learning"):
    started = NOW - timedelta(minutes=minutes)
    return FocusSession(
        id=f"s-{minutes}-{session_type.value}",
        started_at=started.isoformat(),
        ended_at=NOW.isoformat(),
        duration_min=minutes,
        type=session_type,
        completed=completed,
        category_id=category_id,
    )


def test_upsert_daily_aggregate_applies_signed_deltas():
    db = memory_database()
    upsert_daily_aggregate(db, NOW.isoformat(), focus_minutes=25, xp_gained=30,
                           category_id="learning", category_minutes=25)
    upsert_daily_aggregate(db, NOW.isoformat(), completions=1, xp_gained=31)
    row = upsert_daily_aggregate(db, NOW.isoformat(), completions=-1, xp_gained=-31,
                                 category_id="admin", category_minutes=0)

    assert row.date == TODAY
    assert (row.focus_minutes, row.completions, row.xp_gained) == (25, 0, 30)
    assert row.category_focus_minutes == {"learning": 25}
    assert db.analytics_daily.count() == 1


def test_completion_without_character_is_a_no_op():
    db = memory_database()
    task = Task(id="t1", title="Read", category_id="learning", completed_at=NOW.isoformat())
    assert record_task_completion(db, "u1", task, now=NOW) is None
    assert db.event_log.count() == 0
    assert db.analytics_daily.count() == 0


def test_complete_task_awards_xp_stats_streak_and_aggregate(db):
    service = TaskService(db)
    task = service.create_task("Read a chapter", "learning", now=NOW)

    reward = service.complete_task(task.id, now=NOW)

    assert reward.xp_gain == 32
    assert reward.stat_gains == {"intellect": 1}
    character = db.character.get_first()
    assert character.xp_current == 32
    assert character.stats["intellect"] == 6
    assert db.streaks.get_first().task_days == 1
    assert db.analytics_daily.get(TODAY).completions == 1
    assert db.analytics_daily.get(TODAY).xp_gained == 32
    assert db.tasks.get(task.id).completion_reward.xp_gain == 32

    completed = _events(db, EventType.TASK_COMPLETED)
    assert len(completed) == 1
    assert completed[0].payload.xp == 32


def test_completing_a_done_task_is_a_no_op(db):
    service = TaskService(db)
    task = service.create_task("Read", "learning", now=NOW)
    service.complete_task(task.id, now=NOW)
    assert service.complete_task(task.id, now=NOW) is None
    assert len(_events(db, EventType.TASK_COMPLETED)) == 1


def test_same_category_and_repeated_title_penalties(db):
    service = TaskService(db)
    first = service.complete_task(service.create_task("Read", "learning", now=NOW).id, now=NOW)
    same_category = service.complete_task(service.create_task("Write", "learning", now=NOW).id, now=NOW)
    repeated_title = service.complete_task(service.create_task("Read", "creativity", now=NOW).id, now=NOW)

    assert same_category.xp_gain < first.xp_gain
    assert repeated_title.xp_gain < first.xp_gain


def test_level_up_appends_event(db):
    db.character.put(CharacterState(xp_current=160))
    service = TaskService(db)
    reward = service.complete_task(service.create_task("Read", "learning", now=NOW).id, now=NOW)

    assert (reward.level_before, reward.level_after) == (1, 2)
    level_ups = _events(db, EventType.LEVEL_UP)
    assert len(level_ups) == 1
    assert level_ups[0].payload.level_after == 2


def test_complete_then_reopen_restores_character_and_aggregate(db):
    before = db.character.get_first()
    service = TaskService(db)
    task = service.create_task("Read", "learning", now=NOW)

    service.complete_task(task.id, now=NOW)
    reopened = service.reopen_task(task.id, now=NOW)

    assert db.character.get_first() == before
    row = db.analytics_daily.get(TODAY)
    assert (row.completions, row.xp_gained) == (0, 0)
    assert reopened.completed_at is None
    assert reopened.completion_reward is None
    # streaks are not reversed
    assert db.streaks.get_first().task_days == 1

    reopen_events = _events(db, EventType.TASK_REOPENED)
    assert len(reopen_events) == 1
    assert reopen_events[0].payload.xp_gain == 32


def test_reopen_of_todo_task_is_a_no_op(db):
    service = TaskService(db)
    task = service.create_task("Read", "learning", now=NOW)
    assert service.reopen_task(task.id, now=NOW) is None
    assert _events(db, EventType.TASK_REOPENED) == []


def test_focus_session_awards_xp_and_category_minutes(db):
    xp = TaskService(db).add_focus_session(_session(25), now=NOW)

    assert xp == 30
    assert db.character.get_first().xp_current == 30
    assert db.streaks.get_first().focus_days == 1
    row = db.analytics_daily.get(TODAY)
    assert (row.focus_minutes, row.xp_gained) == (25, 30)
    assert row.category_focus_minutes == {"learning": 25}


def test_break_and_abandoned_sessions_are_not_rewarded(db, user_id):
    assert record_focus_session_end(db, user_id, _session(5, SessionType.BREAK), now=NOW) is None
    assert record_focus_session_end(db, user_id, _session(25, completed=False), now=NOW) is None
    assert db.character.get_first().xp_current == 0
    assert db.analytics_daily.count() == 0


def test_focus_session_without_rewards_counts_minutes_only(db):
    before = db.character.get_first()
    assert TaskService(db).add_focus_session(_session(40), apply_rewards=False, now=NOW) is None

    assert db.character.get_first() == before
    assert db.streaks.get_first().focus_days == 0
    row = db.analytics_daily.get(TODAY)
    assert (row.focus_minutes, row.xp_gained) == (40, 0)
    ended = _events(db, EventType.FOCUS_SESSION_ENDED)
    assert ended[0].payload.rewarded is False


def test_sync_is_idempotent(db, user_id):
    service = TaskService(db)
    service.complete_task(service.create_task("Read", "learning", now=NOW).id, now=NOW)

    quest_writes = db.quests.writes
    progress_writes = db.achievement_progress.writes
    events = db.event_log.count()

    assert sync_progress(db, user_id, now=NOW) == ([], [])
    assert db.quests.writes == quest_writes
    assert db.achievement_progress.writes == progress_writes
    assert db.event_log.count() == events


def test_quest_completes_at_target_and_emits_once(db, user_id):
    quest = QuestService(db).create_quest("Two down", ObjectiveType.TASK_COMPLETIONS, 2, 50)
    service = TaskService(db)
    for title in ("a", "b", "c"):
        service.complete_task(service.create_task(title, "admin", now=NOW).id, now=NOW)

    stored = db.quests.get(quest.id)
    assert stored.progress == 2
    assert stored.status == QuestStatus.COMPLETE
    completed = [e for e in _events(db, EventType.QUEST_COMPLETED) if e.payload.quest_id == quest.id]
    assert len(completed) == 1

    sync_quest_progress(db, user_id)
    assert len(_events(db, EventType.QUEST_COMPLETED)) == len(completed)


def test_category_balance_quest_counts_distinct_categories(db):
    quest = QuestService(db).create_quest("Spread out", ObjectiveType.CATEGORY_BALANCE, 3, 20)
    service = TaskService(db)
    for category in ("learning", "learning", "health"):
        service.complete_task(service.create_task(f"t-{category}", category, now=NOW).id, now=NOW)

    assert db.quests.get(quest.id).progress == 2


def test_achievement_unlock_is_sticky(db, user_id):
    db.achievements.put(Achievement(
        id="first-blood", category="mastery", chain="path-a", tier=AchievementTier.BRONZE,
        title="First", requirement_type=RequirementType.TASKS_COMPLETED, requirement_value=1,
    ))
    service = TaskService(db)
    task = service.create_task("Read", "learning", now=NOW)

    service.complete_task(task.id, now=NOW)
    unlocked_at = db.achievement_progress.get("first-blood").unlocked_at
    assert unlocked_at is not None

    service.reopen_task(task.id, now=NOW)
    row = db.achievement_progress.get("first-blood")
    assert row.value == 0
    assert row.unlocked_at == unlocked_at

    sync_achievement_progress(db, user_id, now=NOW + timedelta(days=1))
    badges = [e for e in _events(db, EventType.BADGE_UNLOCKED) if e.payload.achievement_id == "first-blood"]
    assert len(badges) == 1
    assert badges[0].payload.tier == "bronze"


def test_replay_matches_incremental_aggregates(db):
    service = TaskService(db)
    first = service.create_task("Read", "learning", now=NOW)
    second = service.create_task("Lift", "training", now=NOW)
    service.complete_task(first.id, now=NOW)
    service.complete_task(second.id, now=NOW - timedelta(days=1))
    service.reopen_task(first.id, now=NOW)
    service.add_focus_session(_session(25), now=NOW)
    service.add_focus_session(_session(15, category_id="health"), apply_rewards=False, now=NOW)

    stored = {row.date: row for row in db.analytics_daily.list_all()}
    assert replay_daily_aggregates(db.event_log.list_all()) == stored
