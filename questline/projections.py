"""
Projections for Questline.

Write-time updates of the read models that sit next to the event log:
- daily aggregates: additive, signed deltas per calendar date
- task completion / focus session rewards (character, streaks, aggregates)
- exact reversal of a completion on reopen
- quest and achievement progress: recomputed from the entity tables on every
  sync, so a missed update heals itself on the next pass

replay_daily_aggregates() rebuilds the aggregates from the log alone; it
shares merge_delta() with the incremental path so both agree exactly.
"""
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from questline.config_manager import config
from questline.event_sourcing import (
    AppEvent,
    BadgeUnlockedPayload,
    EventType,
    FocusSessionEndedPayload,
    LevelUpPayload,
    QuestCompletedPayload,
    TaskCompletedPayload,
    TaskReopenedPayload,
    append_event,
    sort_for_replay,
)
from questline.logger import get_logger
from questline.models import (
    AchievementProgress,
    DailyAggregate,
    FocusSession,
    ObjectiveType,
    Quest,
    QuestStatus,
    RequirementType,
    SessionType,
    StreakState,
    Task,
    TaskCompletionReward,
    TaskStatus,
)
from questline.progression import (
    TaskXpInput,
    apply_stat_gains,
    apply_xp,
    calculate_focus_xp,
    calculate_task_stat_gain,
    calculate_task_xp,
    remove_xp,
    revert_stat_gains,
)
from questline.storage import Database
from questline.streaks import update_focus_streak, update_task_streak
from questline.utils import day_key, now_iso, now_local, parse_iso

logger = get_logger("projections")


# --- Daily aggregates ---

def merge_delta(
    aggregate: DailyAggregate,
    focus_minutes: int = 0,
    completions: int = 0,
    xp_gained: int = 0,
    category_id: Optional[str] = None,
    category_minutes: int = 0,
) -> DailyAggregate:
    category_focus = dict(aggregate.category_focus_minutes)
    if category_id and category_minutes > 0:
        category_focus[category_id] = category_focus.get(category_id, 0) + category_minutes

    return replace(
        aggregate,
        focus_minutes=aggregate.focus_minutes + focus_minutes,
        completions=aggregate.completions + completions,
        xp_gained=aggregate.xp_gained + xp_gained,
        category_focus_minutes=category_focus,
    )


def upsert_daily_aggregate(
    db: Database,
    occurred_at: str,
    focus_minutes: int = 0,
    completions: int = 0,
    xp_gained: int = 0,
    category_id: Optional[str] = None,
    category_minutes: int = 0,
) -> DailyAggregate:
    """
    Add signed deltas to the aggregate row of occurred_at's local date.

    Only that one row is read and written. Negative deltas are how
    reversals are recorded.
    """
    date = day_key(occurred_at)
    existing = db.analytics_daily.get(date) or DailyAggregate(date=date)
    aggregate = merge_delta(
        existing,
        focus_minutes=focus_minutes,
        completions=completions,
        xp_gained=xp_gained,
        category_id=category_id,
        category_minutes=category_minutes,
    )
    db.analytics_daily.put(aggregate)
    return aggregate


def replay_daily_aggregates(events: Iterable[AppEvent]) -> Dict[str, DailyAggregate]:
    """Rebuild every daily aggregate from the event log alone."""
    rows: Dict[str, DailyAggregate] = {}

    def bump(timestamp: str, **delta) -> None:
        date = day_key(timestamp)
        rows[date] = merge_delta(rows.get(date) or DailyAggregate(date=date), **delta)

    for event in sort_for_replay(events):
        payload = event.payload
        if event.event_type == EventType.TASK_COMPLETED:
            bump(payload.completed_at or event.occurred_at, completions=1, xp_gained=payload.xp)
        elif event.event_type == EventType.TASK_REOPENED:
            if payload.completed_at:
                bump(payload.completed_at, completions=-1, xp_gained=-payload.xp_gain)
        elif event.event_type == EventType.FOCUS_SESSION_ENDED:
            bump(
                payload.ended_at or event.occurred_at,
                focus_minutes=payload.minutes,
                xp_gained=payload.xp,
                category_id=payload.category_id,
                category_minutes=payload.minutes,
            )

    return rows


# --- Rewards ---

def _count_same_category_today(db: Database, task: Task, today: str) -> int:
    return db.tasks.count(
        lambda t: t.id != task.id
        and t.category_id == task.category_id
        and t.completed_at is not None
        and day_key(t.completed_at) == today
    )


def _count_repeated_title(db: Database, task: Task, since: datetime) -> int:
    return db.tasks.count(
        lambda t: t.id != task.id
        and t.title == task.title
        and t.completed_at is not None
        and parse_iso(t.completed_at) >= since
    )


def record_task_completion(
    db: Database,
    user_id: str,
    task: Task,
    now: Optional[datetime] = None,
) -> Optional[TaskCompletionReward]:
    """
    Award XP, stats and streak for a completed task.

    Order: load character, compute reward, persist character, update streak,
    append TaskCompleted, bump the completion day's aggregate.
    Returns None (and changes nothing) when no character exists yet.
    """
    character = db.character.get_first()
    if character is None:
        logger.debug(f"completion of {task.id} ignored: no character")
        return None
    streak = db.streaks.get_first() or StreakState()

    current = now_local(now)
    today = current.date().isoformat()
    completed_at = task.completed_at or current.isoformat()

    category = db.categories.get(task.category_id)
    today_row = db.analytics_daily.get(today)
    daily_xp_before = today_row.xp_gained if (today_row and config.APPLY_DAILY_SOFT_CAP) else 0

    xp = calculate_task_xp(TaskXpInput(
        priority=task.priority,
        deadline_set=bool(task.deadline_at),
        completed_subtasks=task.completed_subtasks,
        estimate_minutes=max(1, task.estimate_minutes),
        same_category_count_today=_count_same_category_today(db, task, today),
        repeated_title_count_24h=_count_repeated_title(
            db, task, current - timedelta(hours=config.REPEAT_TITLE_WINDOW_HOURS)
        ),
        daily_xp_before=daily_xp_before,
        level=character.level,
        category_multiplier=category.xp_multiplier if category else 1.0,
    ))

    leveled = apply_xp(character, xp)
    level_ups = max(0, leveled.level - character.level)
    stat_gains = calculate_task_stat_gain(xp, task.priority, category, level_ups)
    updated = apply_stat_gains(leveled, stat_gains)
    db.character.put(updated)

    db.streaks.put(update_task_streak(streak, today))

    append_event(db.event_log, user_id, EventType.TASK_COMPLETED, TaskCompletedPayload(
        task_id=task.id,
        xp=xp,
        category_id=task.category_id,
        completed_at=completed_at,
    ))
    if level_ups:
        append_event(db.event_log, user_id, EventType.LEVEL_UP, LevelUpPayload(
            level_before=character.level,
            level_after=updated.level,
        ))

    upsert_daily_aggregate(db, completed_at, completions=1, xp_gained=xp)
    logger.info(f"task {task.id} completed: +{xp} xp (level {character.level} -> {updated.level})")

    return TaskCompletionReward(
        xp_gain=xp,
        stat_gains=stat_gains,
        level_before=character.level,
        level_after=updated.level,
    )


def reverse_task_completion(db: Database, user_id: str, task: Task) -> None:
    """
    Undo a completion using the reward stored on the task.

    The stored values are used verbatim, never recomputed. If other XP was
    earned since, remove_xp / revert_stat_gains clamp instead of failing.
    """
    reward = task.completion_reward
    xp_gain = reward.xp_gain if reward else 0

    if reward:
        character = db.character.get_first()
        if character is not None:
            reverted = revert_stat_gains(remove_xp(character, reward.xp_gain), reward.stat_gains)
            db.character.put(reverted)

    if task.completed_at:
        upsert_daily_aggregate(db, task.completed_at, completions=-1, xp_gained=-xp_gain)

    append_event(db.event_log, user_id, EventType.TASK_REOPENED, TaskReopenedPayload(
        task_id=task.id,
        xp_gain=xp_gain,
        completed_at=task.completed_at,
    ))


def record_focus_session_end(
    db: Database,
    user_id: str,
    session: FocusSession,
    now: Optional[datetime] = None,
) -> Optional[int]:
    """
    Award XP and focus streak for a finished work session.

    Breaks and abandoned sessions are ignored. Returns the XP awarded.
    """
    if not session.is_rewardable:
        return None

    character = db.character.get_first()
    if character is None:
        logger.debug(f"focus session {session.id} ignored: no character")
        return None
    streak = db.streaks.get_first() or StreakState()

    minutes = max(0, session.duration_min)
    xp = calculate_focus_xp(minutes, streak.focus_days)
    updated = apply_xp(character, xp)
    db.character.put(updated)

    today = now_local(now).date().isoformat()
    db.streaks.put(update_focus_streak(streak, today))

    ended_at = session.ended_at or session.started_at
    append_event(db.event_log, user_id, EventType.FOCUS_SESSION_ENDED, FocusSessionEndedPayload(
        session_id=session.id,
        task_id=session.task_id,
        category_id=session.category_id,
        minutes=minutes,
        xp=xp,
        ended_at=ended_at,
    ))
    if updated.level > character.level:
        append_event(db.event_log, user_id, EventType.LEVEL_UP, LevelUpPayload(
            level_before=character.level,
            level_after=updated.level,
        ))

    upsert_daily_aggregate(
        db,
        ended_at,
        focus_minutes=minutes,
        xp_gained=xp,
        category_id=session.category_id,
        category_minutes=minutes,
    )
    return xp


def record_focus_session_logged(db: Database, user_id: str, session: FocusSession) -> None:
    """Count a work session's minutes without awarding XP or streak."""
    if session.type != SessionType.WORK:
        return

    minutes = max(0, session.duration_min)
    ended_at = session.ended_at or session.started_at
    append_event(db.event_log, user_id, EventType.FOCUS_SESSION_ENDED, FocusSessionEndedPayload(
        session_id=session.id,
        task_id=session.task_id,
        category_id=session.category_id,
        minutes=minutes,
        xp=0,
        ended_at=ended_at,
        rewarded=False,
    ))
    upsert_daily_aggregate(
        db,
        ended_at,
        focus_minutes=minutes,
        category_id=session.category_id,
        category_minutes=minutes,
    )


# --- Quest / achievement sync ---

def _completed_focus_minutes(db: Database) -> int:
    return sum(
        max(0, s.duration_min)
        for s in db.focus_sessions.list_all()
        if s.type == SessionType.WORK and s.completed
    )


def sync_quest_progress(db: Database, user_id: str) -> List[Quest]:
    """
    Recompute every quest's progress from the task and session tables.

    Only quests whose progress or status changed are written. Returns the
    changed quests.
    """
    done_tasks = [t for t in db.tasks.list_all() if t.status == TaskStatus.DONE]
    completed_task_count = len(done_tasks)
    completed_focus_minutes = _completed_focus_minutes(db)

    completed_by_category: Dict[str, int] = {}
    for task in done_tasks:
        completed_by_category[task.category_id] = completed_by_category.get(task.category_id, 0) + 1

    changed: List[Quest] = []
    for quest in db.quests.list_all():
        if quest.objective_type == ObjectiveType.TASK_COMPLETIONS:
            raw_progress = completed_task_count
        elif quest.objective_type == ObjectiveType.FOCUS_MINUTES:
            raw_progress = completed_focus_minutes
        elif quest.objective_category_id:
            raw_progress = completed_by_category.get(quest.objective_category_id, 0)
        else:
            raw_progress = len(completed_by_category)

        target = max(1, quest.target)
        progress = max(0, min(target, raw_progress))
        status = QuestStatus.COMPLETE if progress >= target else QuestStatus.ACTIVE
        if progress == quest.progress and status == quest.status and target == quest.target:
            continue

        updated = replace(quest, target=target, progress=progress, status=status)
        db.quests.put(updated)
        changed.append(updated)
        if status == QuestStatus.COMPLETE and quest.status != QuestStatus.COMPLETE:
            append_event(db.event_log, user_id, EventType.QUEST_COMPLETED,
                         QuestCompletedPayload(quest_id=quest.id))

    return changed


def sync_achievement_progress(
    db: Database,
    user_id: str,
    now: Optional[datetime] = None,
) -> List[AchievementProgress]:
    """
    Recompute achievement progress from current entities and the streak.

    unlocked_at is set the first time the requirement is met and is never
    cleared afterwards. Returns the rows that were written.
    """
    progress_map = {row.id: row for row in db.achievement_progress.list_all()}
    completed_tasks = db.tasks.count(lambda t: t.status == TaskStatus.DONE)
    focus_minutes_total = _completed_focus_minutes(db)
    streak = db.streaks.get_first()
    task_streak = streak.task_days if streak else 0
    timestamp = now_iso(now)

    metrics = {
        RequirementType.TASKS_COMPLETED: completed_tasks,
        RequirementType.FOCUS_MINUTES_TOTAL: focus_minutes_total,
        RequirementType.TASK_STREAK: task_streak,
    }

    written: List[AchievementProgress] = []
    for achievement in db.achievements.list_all():
        value = metrics[achievement.requirement_type]
        existing = progress_map.get(achievement.id)
        previously_unlocked = existing.unlocked_at if existing else None
        unlocked_at = previously_unlocked or (
            timestamp if value >= achievement.requirement_value else None
        )

        if existing and existing.value == value and existing.unlocked_at == unlocked_at:
            continue

        row = AchievementProgress(id=achievement.id, value=value, unlocked_at=unlocked_at)
        db.achievement_progress.put(row)
        written.append(row)
        if unlocked_at and not previously_unlocked:
            append_event(db.event_log, user_id, EventType.BADGE_UNLOCKED, BadgeUnlockedPayload(
                achievement_id=achievement.id,
                tier=achievement.tier.value,
            ))
            logger.info(f"badge unlocked: {achievement.id}")

    return written


def sync_progress(db: Database, user_id: str, now: Optional[datetime] = None):
    """Run both sync passes; returns (changed quests, written achievement rows)."""
    return sync_quest_progress(db, user_id), sync_achievement_progress(db, user_id, now=now)
