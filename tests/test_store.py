from datetime import date, datetime, timedelta

from goal_unbox.db import init_db
from goal_unbox.models import (
    ActiveGoalState, CompletedGoalRecord, CompletionReason, DailyCommitment, DailyPlan, GoalStatus,
    PlannedGoal, StreakData,
)
from goal_unbox.store import SqliteStore

DAY = date(2024, 5, 15)


def make_store(tmp_db):
    init_db(tmp_db)
    return SqliteStore(tmp_db)


def record(end, reason=CompletionReason.VERIFIED):
    return CompletedGoalRecord(
        full_goal="Write the weekly report", subject="Work",
        start_time=end - timedelta(minutes=45), end_time=end, duration=timedelta(minutes=45),
        completion_reason=reason, goal_summary="Weekly report",
    )


def test_plan_is_saved_and_replaced(tmp_db):
    store = make_store(tmp_db)
    assert store.load_plan(DAY) is None
    goals = (
        PlannedGoal(id="a", description="Read", subject="Algèbre", scheduled_start="09:00", scheduled_end="10:00",
                    estimated_duration=timedelta(minutes=50)),
        PlannedGoal(id="b", description="Write", status=GoalStatus.SKIPPED),
    )
    store.save_plan(DailyPlan(date=DAY, goals=goals))
    assert store.load_plan(DAY) == DailyPlan(date=DAY, goals=goals)
    store.save_plan(DailyPlan(date=DAY, goals=goals[:1]))
    assert store.load_plan(DAY).goals == goals[:1]


def test_active_goal_roundtrip_and_clear(tmp_db):
    store = make_store(tmp_db)
    active = ActiveGoalState(
        description="Read", subject="A", activated_at=datetime(2024, 5, 15, 9, 0, 30),
        time_limit=timedelta(minutes=60), planned_goal_id="a", secret_code="482", consequence="No phone tonight",
    )
    store.save_active_goal(active)
    assert store.load_active_goal() == active
    store.clear_active_goal()
    assert store.load_active_goal() is None


def test_streak_roundtrip(tmp_db):
    store = make_store(tmp_db)
    assert store.load_streak() is None
    streak = StreakData(
        current_streak=3, last_completion_date=DAY, skips_this_week=1, week_start=date(2024, 5, 13),
        accrued_tax=timedelta(milliseconds=15250),
        commitment=DailyCommitment(date=DAY, text="No phone", completed=True),
        last_unlocked_code="482",
    )
    store.save_streak(streak)
    assert store.load_streak() == streak


def test_history_append_list_delete(tmp_db):
    store = make_store(tmp_db)
    first = store.append_history(record(datetime(2024, 5, 14, 10, 0)))
    second = store.append_history(record(datetime(2024, 5, 15, 10, 0), CompletionReason.SKIPPED))
    assert first.id is not None and second.id != first.id
    assert [r.id for r in store.list_history()] == [second.id, first.id]
    assert [r.id for r in store.list_history(since=datetime(2024, 5, 15))] == [second.id]
    assert store.list_history()[0].completion_reason == CompletionReason.SKIPPED
    assert store.delete_history(first.id)
    assert not store.delete_history(first.id)
    assert len(store.list_history()) == 1


def test_settings(tmp_db):
    store = make_store(tmp_db)
    assert store.get_setting("log_level", "WARNING") == "WARNING"
    store.set_setting("log_level", "DEBUG")
    store.set_setting("log_level", "INFO")
    assert store.get_setting("log_level") == "INFO"
