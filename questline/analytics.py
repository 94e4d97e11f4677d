"""
Read-side analytics selectors over the daily aggregates and focus sessions.
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Union

from questline.models import DailyAggregate
from questline.storage import Database
from questline.utils import now_local, parse_iso, round_half_up

WEEKLY_TREND_DAYS = 8


def _as_date(reference: Union[date, datetime, None]) -> date:
    if reference is None:
        return now_local().date()
    if isinstance(reference, datetime):
        return now_local(reference).date()
    return reference


def week_bounds(reference: Union[date, datetime, None] = None):
    """Monday..Sunday of the week containing reference, as yyyy-MM-dd strings."""
    day = _as_date(reference)
    start = day - timedelta(days=day.weekday())
    end = start + timedelta(days=6)
    return start.isoformat(), end.isoformat()


def get_week_aggregates(db: Database, reference: Union[date, datetime, None] = None) -> List[DailyAggregate]:
    start, end = week_bounds(reference)
    return db.analytics_daily.scan_by_index_range("date", start, end)


def completion_rate_on_focus_days(db: Database) -> int:
    """Percentage of days with focus minutes that also had a completion."""
    focus_days = [d for d in db.analytics_daily.list_all() if d.focus_minutes > 0]
    if not focus_days:
        return 0
    completion_days = sum(1 for d in focus_days if d.completions > 0)
    return round_half_up(completion_days / len(focus_days) * 100)


def peak_hour_distribution(db: Database) -> List[int]:
    """Minutes of completed sessions per local start hour (24 buckets)."""
    histogram = [0] * 24
    for session in db.focus_sessions.list_all():
        if not session.completed:
            continue
        histogram[now_local(parse_iso(session.started_at)).hour] += session.duration_min
    return histogram


def peak_day_distribution(db: Database) -> List[int]:
    """Session minutes per local start weekday, Sunday first (7 buckets)."""
    histogram = [0] * 7
    for session in db.focus_sessions.list_all():
        started = now_local(parse_iso(session.started_at))
        histogram[(started.weekday() + 1) % 7] += session.duration_min
    return histogram


def get_year_heatmap(db: Database, year: int) -> List[Dict[str, Union[str, int]]]:
    rows = db.analytics_daily.scan_by_index_range("date", f"{year}-01-01", f"{year}-12-31")
    return [{"date": row.date, "minutes": row.focus_minutes} for row in rows]


def get_weekly_trends(db: Database, limit: int = WEEKLY_TREND_DAYS) -> List[Dict[str, Union[str, int]]]:
    """Most recent `limit` aggregate rows, oldest first."""
    rows = db.analytics_daily.list_ordered_by("date", descending=True)[:limit]
    return [
        {"date": row.date, "focus": row.focus_minutes, "completions": row.completions}
        for row in reversed(rows)
    ]


def heat_level(minutes: int) -> int:
    if minutes <= 0:
        return 0
    if minutes < 20:
        return 1
    if minutes < 45:
        return 2
    if minutes < 90:
        return 3
    return 4


def progress_percent(value: float, target: float) -> int:
    if target <= 0:
        return 0
    return max(0, min(100, round_half_up(value / target * 100)))


def best_focus_day(trends: List[Dict[str, Union[str, int]]]) -> Optional[Dict[str, Union[str, int]]]:
    best = None
    for row in trends:
        if best is None or row["focus"] > best["focus"]:
            best = row
    return best
