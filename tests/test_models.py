"""Tests for data model classes."""
from datetime import date, datetime, timedelta

import pytest

from goal_unbox.models import ActiveGoalState, DailyPlan, GoalStatus, PlannedGoal, StreakData


def test_planned_goal_defaults():
    g = PlannedGoal(id="g1", description="Read")
    assert g.status == GoalStatus.PENDING
    assert g.subject == ""
    assert not g.is_scheduled
    assert g.planned_duration is None


def test_planned_duration_prefers_estimate():
    g = PlannedGoal(id="g1", description="Read", scheduled_start="09:00", scheduled_end="10:30")
    assert g.planned_duration == timedelta(minutes=90)
    g = PlannedGoal(id="g1", description="Read", scheduled_start="09:00", scheduled_end="10:30",
                    estimated_duration=timedelta(minutes=45))
    assert g.planned_duration == timedelta(minutes=45)


def test_status_is_monotonic():
    g = PlannedGoal(id="g1", description="Read").with_status(GoalStatus.COMPLETED)
    assert g.with_status(GoalStatus.COMPLETED).status == GoalStatus.COMPLETED
    with pytest.raises(ValueError):
        g.with_status(GoalStatus.SKIPPED)
    with pytest.raises(ValueError):
        g.with_status(GoalStatus.PENDING)


def test_daily_plan_helpers():
    a = PlannedGoal(id="a", description="A")
    b = PlannedGoal(id="b", description="B", status=GoalStatus.SKIPPED)
    plan = DailyPlan(date=date(2024, 5, 15), goals=(a, b))
    assert plan.get("b") == b
    assert plan.get("zzz") is None
    assert plan.pending() == [a]
    assert not plan.is_finished
    plan = plan.replace_goal(a.with_status(GoalStatus.COMPLETED))
    assert plan.is_finished
    assert not DailyPlan(date=date(2024, 5, 15)).is_finished


def test_active_goal_deadline():
    start = datetime(2024, 5, 15, 9, 0)
    active = ActiveGoalState(description="Read", subject="", activated_at=start, time_limit=timedelta(minutes=30))
    assert active.deadline == start + timedelta(minutes=30)
    assert ActiveGoalState(description="Read", subject="", activated_at=start).deadline is None


def test_streak_defaults():
    s = StreakData()
    assert s.current_streak == 0
    assert s.accrued_tax == timedelta(0)
    assert s.commitment is None
