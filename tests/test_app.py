from unittest.mock import patch

import pytest

from goal_unbox.app import (
    CommandCancelled, ask, build_session, cmd_add, cmd_commit, cmd_history, cmd_start, cmd_today,
    cmd_week, run_command,
)
from goal_unbox.session import GoalActive, HistoryView, PlanningToday, WeeklyPlanView


def make_session(tmp_path, clock):
    return build_session(str(tmp_path / "goals.db"), str(tmp_path / "config.yaml"), clock=clock)


def test_command_cancelled_is_exception():
    with pytest.raises(CommandCancelled):
        raise CommandCancelled()


def test_ask_raises_on_q():
    with patch("goal_unbox.app.Prompt.ask", return_value="q"):
        with pytest.raises(CommandCancelled):
            ask("Description")


def test_ask_returns_stripped_input():
    with patch("goal_unbox.app.Prompt.ask", return_value="  hello "):
        assert ask("Description") == "hello"


def test_today_seeds_plan(tmp_path, clock):
    session = make_session(tmp_path, clock)
    cmd_today(session)
    assert session.snapshot().plan.goals


def test_add_goal_from_prompts(tmp_path, clock):
    session = make_session(tmp_path, clock)
    with patch("goal_unbox.app.Prompt.ask", side_effect=["Morning run", "Sport", "07:00", "07:45", ""]):
        cmd_add(session)
    goal = next(g for g in session.snapshot().plan.goals if g.subject == "Sport")
    assert (goal.scheduled_start, goal.scheduled_end) == ("07:00", "07:45")


def test_start_adhoc_goal_and_sequester_code(tmp_path, clock):
    session = make_session(tmp_path, clock)
    with patch("goal_unbox.app.Prompt.ask", side_effect=["n", "Tidy desk", "15", "Home", "Ten push-ups", "code 314"]):
        cmd_start(session)
    state = session.snapshot().state
    assert isinstance(state, GoalActive)
    assert state.active.secret_code == "314"
    assert state.active.consequence == "Ten push-ups"


def test_cancel_during_code_prompt_leaves_goal_waiting(tmp_path, clock):
    session = make_session(tmp_path, clock)
    with patch("goal_unbox.app.Prompt.ask", side_effect=["n", "Tidy desk", "", "", "q"]):
        assert run_command(session, "start")
    assert session.snapshot().state.draft.description == "Tidy desk"


def test_run_command_reports_domain_errors(tmp_path, clock):
    session = make_session(tmp_path, clock)
    with patch("goal_unbox.app.Prompt.ask", return_value="notes"):
        assert run_command(session, "proof")  # no active goal: printed, not raised
    assert isinstance(session.snapshot().state, PlanningToday)
    assert run_command(session, "nonsense")
    assert not run_command(session, "quit")


def test_history_returns_to_plan(tmp_path, clock):
    session = make_session(tmp_path, clock)
    seen = []

    def answer(*args, **kwargs):
        seen.append(session.snapshot().state)
        return ""

    with patch("goal_unbox.app.Prompt.ask", side_effect=answer):
        cmd_history(session)
    assert isinstance(seen[0], HistoryView)
    assert isinstance(session.snapshot().state, PlanningToday)


def test_week_navigation(tmp_path, clock):
    session = make_session(tmp_path, clock)
    seen = []

    def answer(*args, **kwargs):
        seen.append(session.snapshot().state.week_start)
        return ["n", "b"][len(seen) - 1]

    with patch("goal_unbox.app.Prompt.ask", side_effect=answer):
        cmd_week(session)
    assert [d.isoformat() for d in seen] == ["2024-05-13", "2024-05-20"]
    assert isinstance(session.snapshot().state, PlanningToday)
    assert not isinstance(session.snapshot().state, WeeklyPlanView)


def test_commit_then_complete(tmp_path, clock):
    session = make_session(tmp_path, clock)
    with patch("goal_unbox.app.Prompt.ask", return_value="Read before bed"):
        cmd_commit(session)
    with patch("goal_unbox.app.Confirm.ask", return_value=True):
        cmd_commit(session)
    streak = session.snapshot().streak
    assert streak.commitment.completed
    assert streak.current_streak == 1
