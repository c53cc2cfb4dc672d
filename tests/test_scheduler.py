from datetime import date, datetime, timedelta

import pytest

from goal_unbox.errors import ValidationError
from goal_unbox.models import DailyPlan, GoalStatus, PlannedGoal
from goal_unbox.scheduler import (
    cascade_reschedule, compute_lateness_tax, find_overlaps, goal_lateness_tax, sort_goals,
    validate_plan,
)

DAY = date(2024, 5, 15)
NINE = datetime(2024, 5, 15, 9, 0)


def goal(goal_id, start=None, end=None, **kwargs):
    return PlannedGoal(id=goal_id, description=f"Work on {goal_id}", scheduled_start=start, scheduled_end=end, **kwargs)


def test_no_tax_within_grace_period():
    for seconds in (0, 30, 59, 60):
        assert compute_lateness_tax(NINE, NINE + timedelta(seconds=seconds)) == timedelta(0)


def test_no_tax_for_early_start_or_unscheduled_goal():
    assert compute_lateness_tax(NINE, NINE - timedelta(minutes=10)) == timedelta(0)
    assert compute_lateness_tax(None, NINE) == timedelta(0)


def test_tax_is_a_quarter_of_the_delay():
    assert compute_lateness_tax(NINE, NINE + timedelta(minutes=20)) == timedelta(minutes=5)
    assert compute_lateness_tax(NINE, NINE + timedelta(seconds=61)) == timedelta(milliseconds=15250)


def test_tax_is_monotonic_in_delay():
    delays = [timedelta(seconds=s) for s in (61, 90, 300, 1200, 3601)]
    taxes = [compute_lateness_tax(NINE, NINE + d) for d in delays]
    assert taxes == sorted(taxes)
    assert all(t > timedelta(0) for t in taxes)


def test_goal_lateness_tax_uses_plan_date():
    g = goal("a", "09:00", "10:00")
    assert goal_lateness_tax(DAY, g, NINE + timedelta(minutes=20)) == timedelta(minutes=5)
    assert goal_lateness_tax(DAY, goal("b"), NINE + timedelta(hours=3)) == timedelta(0)


def test_cascade_shifts_overlapping_goal():
    """Started 20 minutes late with a 60 minute estimate: the next goal moves to 10:20."""
    first = goal("a", "09:00", "10:00", estimated_duration=timedelta(minutes=60))
    plan = DailyPlan(date=DAY, goals=(first, goal("b", "10:00", "10:30")))
    result = cascade_reschedule(plan, first, NINE + timedelta(minutes=20), timedelta(minutes=60))
    assert result.get("a") == first
    assert (result.get("b").scheduled_start, result.get("b").scheduled_end) == ("10:20", "10:50")
    assert find_overlaps(result.goals) == []


def test_cascade_pushes_chain_of_tight_goals():
    first = goal("a", "09:00", "10:00")
    plan = DailyPlan(date=DAY, goals=(first, goal("b", "10:00", "10:30"), goal("c", "10:30", "11:00")))
    result = cascade_reschedule(plan, first, NINE + timedelta(minutes=20))
    assert (result.get("b").scheduled_start, result.get("b").scheduled_end) == ("10:20", "10:50")
    assert (result.get("c").scheduled_start, result.get("c").scheduled_end) == ("10:50", "11:20")


def test_cascade_stops_at_goal_with_slack():
    first = goal("a", "09:00", "10:00")
    later = goal("c", "11:00", "12:00")
    plan = DailyPlan(date=DAY, goals=(first, goal("b", "10:00", "10:30"), later))
    result = cascade_reschedule(plan, first, NINE + timedelta(minutes=20))
    assert result.get("b").scheduled_start == "10:20"
    assert result.get("c") == later


def test_cascade_rounds_partial_minutes_up():
    first = goal("a", "09:00", "10:00")
    plan = DailyPlan(date=DAY, goals=(first, goal("b", "10:00", "10:30")))
    result = cascade_reschedule(plan, first, NINE + timedelta(minutes=20, seconds=30))
    assert (result.get("b").scheduled_start, result.get("b").scheduled_end) == ("10:21", "10:51")


def test_cascade_leaves_plan_alone_within_grace():
    first = goal("a", "09:00", "10:00")
    plan = DailyPlan(date=DAY, goals=(first, goal("b", "10:00", "10:30")))
    assert cascade_reschedule(plan, first, NINE + timedelta(seconds=60)) is plan


def test_cascade_ignores_finished_goals():
    first = goal("a", "09:00", "10:00")
    done = goal("b", "10:00", "10:30", status=GoalStatus.SKIPPED)
    plan = DailyPlan(date=DAY, goals=(first, done))
    result = cascade_reschedule(plan, first, NINE + timedelta(minutes=20))
    assert result.get("b") == done


def test_cascade_clamps_at_end_of_day():
    first = goal("a", "22:00", "23:00")
    plan = DailyPlan(date=DAY, goals=(first, goal("b", "23:00", "23:30")))
    result = cascade_reschedule(plan, first, datetime(2024, 5, 15, 22, 50))
    assert (result.get("b").scheduled_start, result.get("b").scheduled_end) == ("23:50", "23:59")


def test_cascade_leaves_goals_that_would_start_after_midnight():
    first = goal("a", "22:00", "23:00")
    late = goal("b", "23:30", "23:45")
    plan = DailyPlan(date=DAY, goals=(first, late))
    result = cascade_reschedule(plan, first, datetime(2024, 5, 15, 23, 20))
    assert result.get("b") == late


def test_find_overlaps():
    a, b, c = goal("a", "09:00", "10:00"), goal("b", "09:30", "10:30"), goal("c", "10:30", "11:00")
    assert find_overlaps([a, b, c]) == [(a, b)]
    assert find_overlaps([a, c]) == []


def test_back_to_back_goals_do_not_overlap():
    validate_plan(DailyPlan(date=DAY, goals=(goal("a", "09:00", "10:00"), goal("b", "10:00", "11:00"))))


def test_validate_plan_rejects_overlap():
    plan = DailyPlan(date=DAY, goals=(goal("a", "09:00", "10:00"), goal("b", "09:30", "10:30")))
    with pytest.raises(ValidationError):
        validate_plan(plan)


def test_sort_goals_puts_unscheduled_last():
    goals = [goal("z"), goal("b", "11:00", "12:00"), goal("a"), goal("c", "08:00", "09:00")]
    assert [g.id for g in sort_goals(goals)] == ["c", "b", "a", "z"]
