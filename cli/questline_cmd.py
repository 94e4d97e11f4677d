"""
CLI: questline

Thin click layer over the application services. Every command opens the
store, runs the idempotent bootstrap and delegates.
"""
import functools
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import click

from questline.analytics import (
    best_focus_day,
    completion_rate_on_focus_days,
    get_week_aggregates,
    get_weekly_trends,
    get_year_heatmap,
    heat_level,
    peak_day_distribution,
    peak_hour_distribution,
    progress_percent,
    week_bounds,
)
from questline.bootstrap import bootstrap_data, ensure_user_profile
from questline.config_manager import config
from questline.exceptions import QuestlineError
from questline.models import DailyInterval, FocusSession, Priority, SessionType, TaskStatus, WeeklyDays
from questline.paths import get_data_dir
from questline.profile_service import ProfileService
from questline.progression import level_progress, xp_to_next
from questline.projections import sync_progress
from questline.quest_service import QuestService
from questline.snapshot_builder import build_snapshot
from questline.snapshot_manager import export_snapshot
from questline.recurrence import WEEKDAY_LABELS
from questline.storage import Database, open_backend, open_database
from questline.task_service import TaskService
from questline.utils import make_id, now_local

BAR_WIDTH = 20


def handle_errors(func):
    """Print known errors as user messages and exit 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except QuestlineError as e:
            click.echo(f"❌ {e.get_user_message()}", err=True)
            raise SystemExit(1)
    return wrapper


def _open(ctx: click.Context) -> Database:
    db = open_backend(config.STORAGE_BACKEND, ctx.obj["data_dir"])
    bootstrap_data(db)
    ensure_user_profile(db)
    return db


def _resolve_task(db: Database, task_ref: str) -> str:
    matches = [t.id for t in db.tasks.list_all() if t.id.startswith(task_ref)]
    if len(matches) != 1:
        raise click.BadParameter(
            f"{len(matches)} tasks match '{task_ref}'", param_hint="TASK_ID"
        )
    return matches[0]


def _bar(ratio: float) -> str:
    filled = int(ratio * BAR_WIDTH)
    return "█" * filled + "░" * (BAR_WIDTH - filled)


@click.group()
@click.option(
    "--data-dir",
    envvar="QUESTLINE_DATA_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Data directory (default: <project>/data)",
)
@click.pass_context
def questline(ctx, data_dir: Optional[Path]):
    """Questline: tasks and focus as an RPG progression loop."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir or get_data_dir()


@questline.command()
@click.option("--name", default=None, help="Display name for a new profile")
@click.pass_context
@handle_errors
def init(ctx, name: Optional[str]):
    """Create the data store and seed defaults."""
    db = open_database(ctx.obj["data_dir"])
    bootstrap_data(db)
    profile = ensure_user_profile(db, display_name=name)
    sync_progress(db, profile.user_id)
    click.echo(f"✅ Ready, {profile.display_name}")
    click.echo(f"📁 Data: {ctx.obj['data_dir']}")


@questline.command()
@click.pass_context
@handle_errors
def status(ctx):
    """Show level, XP, stats and streaks."""
    db = _open(ctx)
    character = db.character.get_first()
    streaks = db.streaks.get_first()

    click.echo(f"Level {character.level}  (prestige {character.prestige_rank}, "
               f"legacy {character.legacy_points})")
    click.echo(f"XP {_bar(level_progress(character))} "
               f"{character.xp_current}/{xp_to_next(character.level)} "
               f"({progress_percent(character.xp_current, xp_to_next(character.level))}%)  "
               f"lifetime {character.xp_lifetime}")
    click.echo("Stats: " + ", ".join(f"{k} {v}" for k, v in character.stats.items()))
    click.echo(f"🔥 Task streak {streaks.task_days}d, focus streak {streaks.focus_days}d")

    trends = get_weekly_trends(db)
    if trends:
        click.echo("Recent focus: " + " ".join(
            " ░▒▓█"[heat_level(row["focus"])] for row in trends
        ))


@questline.command()
@click.option("--year", type=int, default=None, help="Heatmap year (default: this year)")
@click.pass_context
@handle_errors
def stats(ctx, year: Optional[int]):
    """Show week totals, focus habits and the yearly heatmap."""
    db = _open(ctx)
    today = now_local()

    start, end = week_bounds(today)
    week = get_week_aggregates(db, today)
    click.echo(f"Week {start} .. {end}: {sum(d.focus_minutes for d in week)} min focus, "
               f"{sum(d.completions for d in week)} done, {sum(d.xp_gained for d in week)} XP")
    click.echo(f"Completion rate on focus days: {completion_rate_on_focus_days(db)}%")

    hours = peak_hour_distribution(db)
    if any(hours):
        peak = hours.index(max(hours))
        click.echo(f"Peak hour: {peak:02d}:00 ({hours[peak]} min)")
    days = peak_day_distribution(db)
    if any(days):
        peak = days.index(max(days))
        click.echo(f"Peak day: {WEEKDAY_LABELS[peak]} ({days[peak]} min)")

    best = best_focus_day(get_weekly_trends(db))
    if best and best["focus"]:
        click.echo(f"Best recent day: {best['date']} ({best['focus']} min)")

    year = year or today.year
    heatmap = get_year_heatmap(db, year)
    active = [cell for cell in heatmap if cell["minutes"] > 0]
    click.echo(f"{year}: {len(active)} active days, "
               f"{sum(cell['minutes'] for cell in heatmap)} min")
    if active:
        click.echo("".join(" ░▒▓█"[heat_level(cell["minutes"])] for cell in heatmap))


# --- tasks ---

@questline.group()
def task():
    """Task commands."""


@task.command("add")
@click.argument("title")
@click.option("--category", "category_id", default="learning", show_default=True)
@click.option("--priority", type=click.Choice([p.value for p in Priority]), default="medium", show_default=True)
@click.option("--estimate", type=int, default=30, show_default=True, help="Minutes")
@click.option("--deadline", default=None, help="ISO-8601 deadline")
@click.option("--every-days", type=int, default=None, help="Repeat every N days")
@click.option("--weekdays", default=None, help="Repeat on weekdays, e.g. 1,3 (0=Sun)")
@click.option("--every-weeks", type=int, default=1, show_default=True)
@click.option("--subtask", "subtasks", multiple=True)
@click.option("--tag", "tags", multiple=True)
@click.pass_context
@handle_errors
def task_add(ctx, title, category_id, priority, estimate, deadline, every_days, weekdays,
             every_weeks, subtasks, tags):
    """Create a task."""
    db = _open(ctx)
    if db.categories.get(category_id) is None:
        raise click.BadParameter(f"unknown category '{category_id}'", param_hint="--category")

    recurrence = None
    if every_days:
        recurrence = DailyInterval(interval_days=every_days)
    elif weekdays:
        days = tuple(int(d) for d in weekdays.split(",") if d.strip())
        recurrence = WeeklyDays(interval_weeks=every_weeks, weekdays=days)

    created = TaskService(db).create_task(
        title,
        category_id,
        priority=Priority(priority),
        estimate_minutes=estimate,
        deadline_at=deadline,
        recurrence=recurrence,
        tags=list(tags),
        subtasks=list(subtasks),
    )
    click.echo(f"📝 {created.id[:8]}  {created.title}")


@task.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include completed tasks")
@click.pass_context
@handle_errors
def task_list(ctx, show_all: bool):
    """List tasks, most recently updated first."""
    db = _open(ctx)
    status_filter = None if show_all else TaskStatus.TODO
    tasks = TaskService(db).list_tasks(status=status_filter)
    if not tasks:
        click.echo("No tasks.")
        return
    for t in tasks:
        mark = "x" if t.status == TaskStatus.DONE else " "
        extra = f"  ({t.recurrence_rule})" if t.recurrence_rule else ""
        click.echo(f"[{mark}] {t.id[:8]}  {t.title}  #{t.category_id}{extra}")


@task.command("done")
@click.argument("task_id")
@click.pass_context
@handle_errors
def task_done(ctx, task_id: str):
    """Complete a task and collect the reward."""
    db = _open(ctx)
    reward = TaskService(db).complete_task(_resolve_task(db, task_id))
    if reward is None:
        click.echo("Nothing to do: task already done.")
        return
    click.echo(f"⚔️ +{reward.xp_gain} XP")
    if reward.stat_gains:
        click.echo("   " + ", ".join(f"+{v} {k}" for k, v in reward.stat_gains.items()))
    if reward.level_after > reward.level_before:
        click.echo(f"⬆️ Level {reward.level_before} -> {reward.level_after}")


@task.command("reopen")
@click.argument("task_id")
@click.pass_context
@handle_errors
def task_reopen(ctx, task_id: str):
    """Reopen a completed task; its reward is taken back."""
    db = _open(ctx)
    reopened = TaskService(db).reopen_task(_resolve_task(db, task_id))
    click.echo("↩️ Reopened" if reopened else "Nothing to do: task is not done.")


@task.command("rm")
@click.argument("task_id")
@click.pass_context
@handle_errors
def task_rm(ctx, task_id: str):
    """Delete a task."""
    db = _open(ctx)
    TaskService(db).delete_task(_resolve_task(db, task_id))
    click.echo("🗑️ Deleted")


# --- focus / quests / snapshot / prestige ---

@questline.command()
@click.argument("minutes", type=int)
@click.option("--category", "category_id", default=None)
@click.option("--task", "task_ref", default=None, help="Task id (prefix) worked on")
@click.option("--no-rewards", is_flag=True, help="Log the minutes without XP")
@click.pass_context
@handle_errors
def focus(ctx, minutes: int, category_id: Optional[str], task_ref: Optional[str], no_rewards: bool):
    """Log a finished work session of MINUTES."""
    db = _open(ctx)
    ended = now_local()
    session = FocusSession(
        id=make_id(),
        started_at=(ended - timedelta(minutes=max(0, minutes))).isoformat(),
        ended_at=ended.isoformat(),
        duration_min=minutes,
        type=SessionType.WORK,
        completed=True,
        task_id=_resolve_task(db, task_ref) if task_ref else None,
        category_id=category_id,
    )
    service = TaskService(db)
    service.start_focus_session(session)
    xp = service.add_focus_session(session, apply_rewards=not no_rewards)
    if xp:
        click.echo(f"🎯 {minutes} min focused, +{xp} XP")
    else:
        click.echo(f"🎯 {minutes} min logged")


@questline.command()
@click.option("--refresh", is_flag=True, help="Regenerate daily and weekly quests")
@click.pass_context
@handle_errors
def quests(ctx, refresh: bool):
    """Show active quests."""
    db = _open(ctx)
    service = QuestService(db)
    if refresh:
        service.refresh_daily_quests()
        service.refresh_weekly_quests()

    active: List = service.active_quests()
    if not active:
        click.echo("No active quests.")
        return
    for q in active:
        click.echo(f"[{q.kind.value:9}] {q.title}  {q.progress}/{q.target}  (+{q.reward.xp} XP)")


@questline.command()
@click.option("--export", "do_export", is_flag=True, help="Also write it to the snapshot directory")
@click.pass_context
@handle_errors
def snapshot(ctx, do_export: bool):
    """Print today's shareable snapshot."""
    db = _open(ctx)
    snap = build_snapshot(db)
    click.echo(snap.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    if do_export:
        path = export_snapshot(snap, Path(ctx.obj["data_dir"]) / "snapshots")
        click.echo(f"📁 {path}")


@questline.command("prestige")
@click.pass_context
@handle_errors
def prestige_cmd(ctx):
    """Reset to level 1 for a prestige rank (season cap required)."""
    db = _open(ctx)
    updated = ProfileService(db).prestige_character()
    if updated is None:
        character = db.character.get_first()
        click.echo(f"Not yet: level {character.level}/{character.season_cap}")
        return
    click.echo(f"🌟 Prestige rank {updated.prestige_rank}, legacy points {updated.legacy_points}")


if __name__ == "__main__":
    questline()
