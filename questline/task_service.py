"""
Task and focus-session application service.

Every flow follows the same order: load, compute, persist the entity, append
the event, update projections. Calls with unmet preconditions (no profile,
unknown task, wrong status) return None and change nothing.
"""
from dataclasses import fields, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from questline.event_sourcing import (
    EventType,
    FocusSessionStartedPayload,
    TaskCreatedPayload,
    TaskDeletedPayload,
    TaskUpdatedPayload,
    append_event,
)
from questline.exceptions import NoValidOccurrence
from questline.logger import get_logger
from questline.models import (
    FocusSession,
    Priority,
    Recurrence,
    Subtask,
    Task,
    TaskCompletionReward,
    TaskStatus,
)
from questline.projections import (
    record_focus_session_end,
    record_focus_session_logged,
    record_task_completion,
    reverse_task_completion,
    sync_progress,
)
from questline.recurrence import recurrence_label, spawn_next_occurrence
from questline.storage import Database
from questline.utils import make_id, now_iso

logger = get_logger("task_service")

# Fields a patch may never overwrite
PROTECTED_FIELDS = ("id", "created_at", "updated_at", "status", "completed_at", "completion_reward")


class TaskService:
    """Application service for tasks and focus sessions."""

    def __init__(self, db: Database):
        self.db = db

    def _user_id(self) -> Optional[str]:
        profile = self.db.user_profile.get_first()
        return profile.user_id if profile else None

    # ---------------------------------------------------------------------
    # Tasks
    # ---------------------------------------------------------------------
    def create_task(
        self,
        title: str,
        category_id: str,
        priority: Priority = Priority.MEDIUM,
        estimate_minutes: int = 30,
        deadline_at: Optional[str] = None,
        recurrence: Optional[Recurrence] = None,
        tags: Optional[List[str]] = None,
        notes: str = "",
        subtasks: Optional[List[str]] = None,
        parent_task_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Task]:
        user_id = self._user_id()
        if user_id is None:
            logger.debug("create_task ignored: no profile")
            return None

        timestamp = now_iso(now)
        task = Task(
            id=make_id(),
            title=title,
            category_id=category_id,
            priority=Priority(priority),
            estimate_minutes=max(1, int(estimate_minutes)),
            deadline_at=deadline_at,
            recurrence=recurrence,
            tags=list(tags or []),
            notes=notes,
            subtasks=[Subtask(id=make_id(), title=s) for s in (subtasks or [])],
            parent_task_id=parent_task_id,
            created_at=timestamp,
            updated_at=timestamp,
        )
        if recurrence is not None:
            task.recurrence_rule = recurrence_label(task)

        self.db.tasks.put(task)
        append_event(self.db.event_log, user_id, EventType.TASK_CREATED,
                     TaskCreatedPayload(task_id=task.id, category_id=task.category_id))
        return task

    def update_task(self, task_id: str, patch: Dict[str, Any], now: Optional[datetime] = None) -> Optional[Task]:
        """Apply a field patch; identity, status and completion fields are kept."""
        user_id = self._user_id()
        if user_id is None:
            return None
        task = self.db.tasks.get(task_id)
        if task is None:
            logger.debug(f"update_task ignored: unknown task {task_id}")
            return None

        task_fields = {f.name for f in fields(Task)}
        changes = {k: v for k, v in patch.items() if k in task_fields and k not in PROTECTED_FIELDS}
        ignored = sorted(set(patch) - set(changes))
        if ignored:
            logger.debug(f"update_task {task_id}: ignoring {ignored}")
        if "priority" in changes:
            changes["priority"] = Priority(changes["priority"])
        updated = replace(task, **changes, updated_at=now_iso(now))
        if "recurrence" in changes:
            updated.recurrence_rule = recurrence_label(updated)

        self.db.tasks.put(updated)
        append_event(self.db.event_log, user_id, EventType.TASK_UPDATED,
                     TaskUpdatedPayload(task_id=task_id, patch_keys=sorted(changes)))
        return updated

    def delete_task(self, task_id: str) -> Optional[Task]:
        user_id = self._user_id()
        if user_id is None:
            return None
        task = self.db.tasks.get(task_id)
        if task is None:
            return None

        self.db.tasks.delete(task_id)
        append_event(self.db.event_log, user_id, EventType.TASK_DELETED,
                     TaskDeletedPayload(task_id=task_id))
        sync_progress(self.db, user_id)
        return task

    def complete_task(self, task_id: str, now: Optional[datetime] = None) -> Optional[TaskCompletionReward]:
        """
        Mark a task done and award its reward.

        The reward is stored on the task so a later reopen can reverse it
        exactly. A recurring task spawns its next occurrence.
        """
        user_id = self._user_id()
        if user_id is None:
            return None
        task = self.db.tasks.get(task_id)
        if task is None or task.status == TaskStatus.DONE:
            logger.debug(f"complete_task ignored: {task_id} missing or already done")
            return None

        timestamp = now_iso(now)
        done = replace(task, status=TaskStatus.DONE, completed_at=timestamp, updated_at=timestamp)
        reward = record_task_completion(self.db, user_id, done, now=now)
        if reward and reward.xp_gain > 0:
            done.completion_reward = reward.to_stored()
        self.db.tasks.put(done)

        if done.recurrence is not None:
            self._spawn_next(done, timestamp)

        sync_progress(self.db, user_id, now=now)
        return reward

    def _spawn_next(self, task: Task, completed_at: str) -> Task:
        try:
            next_task = spawn_next_occurrence(task, completed_at)
        except NoValidOccurrence as e:
            logger.warning(f"{e.message}; next occurrence of {task.id} has no deadline")
            next_task = spawn_next_occurrence(task, completed_at, with_deadline=False)
        self.db.tasks.put(next_task)
        return next_task

    def reopen_task(self, task_id: str, now: Optional[datetime] = None) -> Optional[Task]:
        """Undo a completion: character, aggregate and quests roll back."""
        user_id = self._user_id()
        if user_id is None:
            return None
        task = self.db.tasks.get(task_id)
        if task is None or task.status != TaskStatus.DONE:
            logger.debug(f"reopen_task ignored: {task_id} missing or not done")
            return None

        reverse_task_completion(self.db, user_id, task)
        reopened = replace(
            task,
            status=TaskStatus.TODO,
            completed_at=None,
            completion_reward=None,
            updated_at=now_iso(now),
        )
        self.db.tasks.put(reopened)

        sync_progress(self.db, user_id, now=now)
        return reopened

    def list_tasks(self, status: Optional[TaskStatus] = None) -> List[Task]:
        """Most recently updated first."""
        tasks = self.db.tasks.list_ordered_by("updated_at", descending=True)
        if status is not None:
            tasks = [t for t in tasks if t.status == TaskStatus(status)]
        return tasks

    # ---------------------------------------------------------------------
    # Focus sessions
    # ---------------------------------------------------------------------
    def start_focus_session(self, session: FocusSession) -> Optional[FocusSession]:
        user_id = self._user_id()
        if user_id is None:
            return None
        append_event(self.db.event_log, user_id, EventType.FOCUS_SESSION_STARTED,
                     FocusSessionStartedPayload(
                         session_id=session.id,
                         task_id=session.task_id,
                         category_id=session.category_id,
                     ))
        return session

    def add_focus_session(
        self,
        session: FocusSession,
        apply_rewards: bool = True,
        now: Optional[datetime] = None,
    ) -> Optional[int]:
        """
        Store a finished session.

        With apply_rewards=False only the minutes are counted (no XP, no
        streak, no sync). Returns the XP awarded, if any.
        """
        user_id = self._user_id()
        if user_id is None:
            return None

        self.db.focus_sessions.put(session)
        if not apply_rewards:
            record_focus_session_logged(self.db, user_id, session)
            return None

        xp = record_focus_session_end(self.db, user_id, session, now=now)
        sync_progress(self.db, user_id, now=now)
        return xp
