"""Completed goal history and weekly progress statistics."""
from collections import defaultdict
from datetime import date, datetime, timedelta

from goal_unbox.errors import ValidationError
from goal_unbox.models import CompletedGoalRecord, CompletionReason, GoalStatus
from goal_unbox.planner import load_week
from goal_unbox.timeutils import week_start


def get_progress_label(rate: float) -> str:
    if rate >= 80:
        return "ON TRACK"
    elif rate >= 60:
        return "STEADY"
    elif rate >= 40:
        return "SLIPPING"
    return "OFF TRACK"


def get_progress_color(rate: float) -> str:
    if rate >= 80:
        return "green"
    elif rate >= 60:
        return "yellow"
    elif rate >= 40:
        return "dark_orange"
    return "red"


def recent_history(store, limit: int | None = None) -> list[CompletedGoalRecord]:
    records = store.list_history()
    return records[:limit] if limit else records


def delete_record(store, record_id: int) -> None:
    if not store.delete_history(record_id):
        raise ValidationError(f"No history entry {record_id}")


def group_by_day(records: list[CompletedGoalRecord]) -> dict[date, list[CompletedGoalRecord]]:
    """Records keyed by the day they ended on, most recent day first."""
    grouped = defaultdict(list)
    for record in records:
        grouped[record.end_time.date()].append(record)
    return dict(sorted(grouped.items(), reverse=True))


def get_weekly_stats(store, any_day: date) -> dict:
    monday = week_start(any_day)
    records = store.list_history(since=datetime.combine(monday, datetime.min.time()))
    records = [r for r in records if r.end_time.date() < monday + timedelta(days=7)]
    verified = [r for r in records if r.completion_reason == CompletionReason.VERIFIED]
    focus = sum((r.duration for r in verified), timedelta(0))

    goals = [g for plan in load_week(store, monday) for g in plan.goals]
    completed = sum(1 for g in goals if g.status == GoalStatus.COMPLETED)
    skipped = sum(1 for g in goals if g.status == GoalStatus.SKIPPED)
    rate = (completed / len(goals) * 100) if goals else 0.0
    return {
        "week_start": monday,
        "goals_planned": len(goals),
        "goals_completed": completed,
        "goals_skipped": skipped,
        "reflections": len(records) - len(verified),
        "focus_time": focus,
        "completion_rate": round(rate, 1),
        "label": get_progress_label(rate),
    }
