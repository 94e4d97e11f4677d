"""
Recurring tasks: next deadline, display label and the spawned follow-up task.

Deadlines keep their local wall-clock time across DST changes: the time of
day is taken from the base deadline and re-applied to the candidate date.
"""
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import List, Optional

from questline.config_manager import config
from questline.exceptions import NoValidOccurrence
from questline.models import DailyInterval, Subtask, Task, TaskStatus, WeeklyDays
from questline.utils import make_id, parse_iso, round_half_up

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _with_time_from(base: datetime, day: date) -> datetime:
    # naive combine, then resolve the local offset for that date
    return datetime.combine(day, base.time()).astimezone()


def _sunday_of(day: date) -> date:
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _clean_weekdays(weekdays) -> List[int]:
    return sorted({int(d) for d in weekdays if 0 <= int(d) <= 6})


def next_recurring_deadline(task: Task, completed_at: str) -> Optional[str]:
    """
    Next deadline for a recurring task completed at `completed_at`.

    Returns None for a task without recurrence.

    Raises:
        NoValidOccurrence: weekly recurrence with no weekdays, or no candidate
            found within RECURRENCE_MAX_CYCLES cycles.
    """
    recurrence = task.recurrence
    if recurrence is None:
        return None

    completed = parse_iso(completed_at)
    # wall-clock time and weekday are read in local time whatever offset was stored
    base = (parse_iso(task.deadline_at) if task.deadline_at else completed).astimezone()

    if isinstance(recurrence, DailyInterval):
        interval_days = max(1, round_half_up(recurrence.interval_days))
        return _with_time_from(base, base.date() + timedelta(days=interval_days)).isoformat()

    if isinstance(recurrence, WeeklyDays):
        interval_weeks = max(1, round_half_up(recurrence.interval_weeks))
        weekdays = _clean_weekdays(recurrence.weekdays)
        if not weekdays:
            raise NoValidOccurrence(f"Task {task.id} repeats weekly on no weekday")

        anchor = _sunday_of(base.date())
        max_cycles = config.RECURRENCE_MAX_CYCLES
        for cycle in range(max_cycles):
            week_start = anchor + timedelta(days=cycle * interval_weeks * 7)
            for weekday in weekdays:
                candidate = _with_time_from(base, week_start + timedelta(days=weekday))
                if candidate > completed:
                    return candidate.isoformat()

        raise NoValidOccurrence(
            f"No occurrence of task {task.id} after {completed_at}", max_cycles=max_cycles
        )

    return None


def recurrence_label(task: Task) -> Optional[str]:
    recurrence = task.recurrence
    if recurrence is None:
        return task.recurrence_rule

    if isinstance(recurrence, DailyInterval):
        n = max(1, round_half_up(recurrence.interval_days))
        return "Every day" if n == 1 else f"Every {n} days"

    every = max(1, round_half_up(recurrence.interval_weeks))
    day_text = ", ".join(WEEKDAY_LABELS[d] for d in _clean_weekdays(recurrence.weekdays))
    return f"Weekly: {day_text}" if every == 1 else f"Every {every} weeks: {day_text}"


def spawn_next_occurrence(task: Task, completed_at: str, with_deadline: bool = True) -> Task:
    """
    Build the follow-up todo task for a completed recurring task.

    Raises NoValidOccurrence from the deadline expansion unless
    with_deadline is False, in which case the new task has no deadline.
    """
    deadline_at = next_recurring_deadline(task, completed_at) if with_deadline else None
    return replace(
        task,
        id=make_id(),
        status=TaskStatus.TODO,
        created_at=completed_at,
        updated_at=completed_at,
        completed_at=None,
        completion_reward=None,
        deadline_at=deadline_at,
        recurrence_rule=recurrence_label(task),
        subtasks=[Subtask(id=make_id(), title=s.title, done=False) for s in task.subtasks],
        tags=list(task.tags),
    )
