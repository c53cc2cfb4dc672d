"""End-to-end day: skip with reflection, earned break, automatic start of the next goal."""
from datetime import date, datetime, timedelta

from goal_unbox.adapters import ConfirmingVerifier, DigitCodeReader, TruncatingSummarizer
from goal_unbox.config import REFLECTION_SUMMARY
from goal_unbox.db import init_db
from goal_unbox.engine import GoalSession
from goal_unbox.models import CompletionReason, GoalStatus
from goal_unbox.session import AwaitingBreakChoice, AwaitingCode, BreakActive, GoalActive, IntentKind
from goal_unbox.store import SqliteStore

DAY = date(2024, 5, 15)


def test_skip_reflect_break_and_continue(tmp_db, clock):
    init_db(tmp_db)
    session = GoalSession(
        SqliteStore(tmp_db), clock=clock, seed=False,
        verifier=ConfirmingVerifier(lambda goal, proof: True),
        extractor=DigitCodeReader(), summarizer=TruncatingSummarizer(),
    )
    for description, start, end in [("Physics", "09:00", "10:00"), ("Algebra", "10:30", "11:30")]:
        session.dispatch(IntentKind.ADD_GOAL, {"description": description, "scheduled_start": start, "scheduled_end": end})
    physics, algebra = sorted(session.snapshot().plan.goals, key=lambda g: g.scheduled_start)

    session.dispatch(IntentKind.START_GOAL, {"goal_id": physics.id})
    session.dispatch(IntentKind.SUBMIT_CODE, {"image": "111"})
    clock.advance(minutes=10)
    snap = session.dispatch(IntentKind.SKIP_GOAL)
    assert isinstance(snap.state, AwaitingCode)
    assert snap.skips_left == 1
    assert session.store.load_plan(DAY).get(physics.id).status == GoalStatus.SKIPPED
    assert session.store.load_active_goal() is None

    session.dispatch(IntentKind.SUBMIT_CODE, {"image": "222"})
    clock.advance(minutes=4)
    snap = session.dispatch(IntentKind.SUBMIT_PROOF, {"proof": "reflection notes"})
    assert isinstance(snap.state, AwaitingBreakChoice)
    assert snap.state.allocation.duration_remaining == timedelta(minutes=30)
    reflection = session.store.list_history()[0]
    assert reflection.completion_reason == CompletionReason.SKIPPED
    assert reflection.goal_summary == REFLECTION_SUMMARY

    clock.advance(seconds=120)
    snap = session.tick()
    assert isinstance(snap.state, BreakActive)
    assert snap.state.next_goal.id == algebra.id
    session.dispatch(IntentKind.SUBMIT_CODE, {"image": "333"})

    clock.advance(minutes=30)
    snap = session.tick()
    assert isinstance(snap.state, GoalActive)
    assert snap.active_goal.planned_goal_id == algebra.id
    assert snap.active_goal.activated_at == datetime(2024, 5, 15, 9, 46)
    assert session.store.load_active_goal() == snap.active_goal
    assert session.store.load_streak().skips_this_week == 1
