from datetime import date, timedelta

from goal_unbox.breaks import allocate_break, apply_tax, compute_available_break, next_scheduled_goal
from goal_unbox.models import GoalStatus, PlannedGoal, StreakData


def goal(goal_id, start=None, end=None, **kwargs):
    return PlannedGoal(id=goal_id, description=goal_id, scheduled_start=start, scheduled_end=end, **kwargs)


DONE = goal("a", "09:00", "10:00", status=GoalStatus.COMPLETED)


def test_available_break_is_gap_to_next_goal():
    goals = [DONE, goal("c", "12:00", "13:00"), goal("b", "10:30", "11:00")]
    assert compute_available_break(DONE, goals) == timedelta(minutes=30)


def test_no_break_without_next_scheduled_goal():
    assert compute_available_break(DONE, [DONE]) == timedelta(0)
    assert compute_available_break(DONE, [DONE, goal("b")]) == timedelta(0)
    assert compute_available_break(None, [goal("b", "10:30", "11:00")]) == timedelta(0)


def test_no_break_for_back_to_back_or_overlapping_goals():
    assert compute_available_break(DONE, [DONE, goal("b", "10:00", "11:00")]) == timedelta(0)
    assert compute_available_break(DONE, [DONE, goal("b", "09:45", "11:00")]) == timedelta(0)


def test_next_scheduled_goal_skips_finished_goals():
    skipped = goal("b", "10:15", "10:30", status=GoalStatus.SKIPPED)
    nxt = goal("c", "10:30", "11:00")
    assert next_scheduled_goal([DONE, skipped, nxt], exclude_id="a") == nxt


def test_apply_tax():
    streak = StreakData(accrued_tax=timedelta(minutes=5))
    final, applied, streak = apply_tax(timedelta(minutes=30), streak)
    assert final == timedelta(minutes=25)
    assert applied == timedelta(minutes=5)
    assert streak.accrued_tax == timedelta(0)


def test_apply_tax_never_goes_negative():
    final, applied, streak = apply_tax(timedelta(minutes=30), StreakData(accrued_tax=timedelta(minutes=45)))
    assert final == timedelta(0)
    assert applied == timedelta(minutes=30)
    assert streak.accrued_tax == timedelta(0)


def test_allocate_break_scenario():
    nxt = goal("b", "10:30", "11:00")
    allocation, streak = allocate_break(DONE, [DONE, nxt], StreakData(accrued_tax=timedelta(minutes=5)))
    assert allocation.duration_remaining == timedelta(minutes=25)
    assert allocation.applied_tax == timedelta(minutes=5)
    assert allocation.next_goal_candidate == nxt
    assert streak.accrued_tax == timedelta(0)


def test_allocate_break_keeps_tax_when_no_break():
    assert allocate_break(DONE, [DONE, goal("b", "10:00", "11:00")], StreakData(accrued_tax=timedelta(minutes=5))) is None
