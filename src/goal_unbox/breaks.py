"""Break allocation between consecutive goals."""
from dataclasses import replace
from datetime import timedelta

from goal_unbox.models import BreakAllocation, PlannedGoal, StreakData
from goal_unbox.timeutils import parse_hhmm

ZERO = timedelta(0)


def next_scheduled_goal(goals, exclude_id: str | None = None) -> PlannedGoal | None:
    """Earliest-starting pending goal that has a start time."""
    candidates = [
        g for g in goals
        if g.is_pending and g.id != exclude_id and parse_hhmm(g.scheduled_start) is not None
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda g: parse_hhmm(g.scheduled_start))


def compute_available_break(completed_goal: PlannedGoal | None, goals) -> timedelta:
    """Gap between the end of ``completed_goal`` and the start of the next pending goal.

    Zero when there is no next goal, when either time is missing, or when the
    goals are back to back or overlapping.
    """
    if completed_goal is None:
        return ZERO
    upcoming = next_scheduled_goal(goals, exclude_id=completed_goal.id)
    if upcoming is None:
        return ZERO
    completed_end = parse_hhmm(completed_goal.scheduled_end)
    if completed_end is None:
        return ZERO
    gap = parse_hhmm(upcoming.scheduled_start) - completed_end
    return timedelta(minutes=gap) if gap > 0 else ZERO


def apply_tax(break_time: timedelta, streak: StreakData) -> tuple[timedelta, timedelta, StreakData]:
    """Spend all accrued tax against a break.

    Returns:
        (final break, tax actually deducted, streak with the tax cleared)
    """
    final = max(ZERO, break_time - streak.accrued_tax)
    applied = break_time - final
    return final, applied, replace(streak, accrued_tax=ZERO)


def allocate_break(
    completed_goal: PlannedGoal | None, goals, streak: StreakData
) -> tuple[BreakAllocation, StreakData] | None:
    """Compute the taxed break after a completion, or None when no break is due."""
    available = compute_available_break(completed_goal, goals)
    upcoming = next_scheduled_goal(goals, exclude_id=completed_goal.id if completed_goal else None)
    if available <= ZERO or upcoming is None:
        return None
    final, applied, streak = apply_tax(available, streak)
    return BreakAllocation(duration_remaining=final, applied_tax=applied, next_goal_candidate=upcoming), streak
