"""Session state machine driving a day's goals from planning to completion.

Every user action, external result and clock tick enters through
``SessionStateMachine.intent``. A call either raises (``ValidationError`` or
``StateError``) and leaves the session untouched, or commits the new state and
returns the side effects the caller must carry out, in order.
"""
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Optional

from loguru import logger

from goal_unbox import planner
from goal_unbox.breaks import allocate_break
from goal_unbox.clock import SystemClock
from goal_unbox.config import DEFAULT_RULES, Rules
from goal_unbox.countdown import CountdownController, CountdownKind
from goal_unbox.errors import InvariantViolation, StaleResponse, StateError, ValidationError
from goal_unbox.models import (
    ActiveGoalState, BreakAllocation, CompletedGoalRecord, CompletionReason, DailyPlan,
    GoalStatus, PlannedGoal, StreakData, VerificationFeedback, VerificationResult,
)
from goal_unbox.scheduler import cascade_reschedule, goal_lateness_tax
from goal_unbox.streak import (
    add_tax, complete_commitment, normalize_streak, record_completion, record_skip,
    set_commitment, skips_left,
)
from goal_unbox.timeutils import week_start


class SessionState(str, Enum):
    PLANNING_TODAY = "planning_today"
    AWAITING_CODE = "awaiting_code"
    GOAL_ACTIVE = "goal_active"
    VERIFYING_PROOF = "verifying_proof"
    GOAL_COMPLETED = "goal_completed"
    AWAITING_BREAK_CHOICE = "awaiting_break_choice"
    BREAK_ACTIVE = "break_active"
    HISTORY_VIEW = "history_view"
    WEEKLY_PLAN_VIEW = "weekly_plan_view"


class IntentKind(str, Enum):
    START_GOAL = "start_goal"
    SUBMIT_CODE = "submit_code"
    CODE_EXTRACTED = "code_extracted"
    EXTRACTION_FAILED = "extraction_failed"
    SUBMIT_PROOF = "submit_proof"
    FOLLOW_UP = "follow_up"
    VERIFICATION_RESULT = "verification_result"
    VERIFICATION_FAILED = "verification_failed"
    SKIP_GOAL = "skip_goal"
    ABANDON_GOAL = "abandon_goal"
    PICK_NEXT_GOAL = "pick_next_goal"
    ACKNOWLEDGE = "acknowledge"
    CANCEL = "cancel"
    SHOW_HISTORY = "show_history"
    SHOW_WEEK = "show_week"
    NAVIGATE_WEEK = "navigate_week"
    BACK = "back"
    ADD_GOAL = "add_goal"
    EDIT_GOAL = "edit_goal"
    REMOVE_GOAL = "remove_goal"
    REORDER_PLAN = "reorder_plan"
    SET_COMMITMENT = "set_commitment"
    COMPLETE_COMMITMENT = "complete_commitment"
    TICK = "tick"


# -- states --

@dataclass(frozen=True)
class GoalDraft:
    """A goal chosen to start, waiting for its code to be sequestered."""
    description: str
    subject: str = ""
    time_limit: Optional[timedelta] = None
    planned_goal_id: Optional[str] = None
    consequence: Optional[str] = None


@dataclass(frozen=True)
class PlanningToday:
    kind: ClassVar[SessionState] = SessionState.PLANNING_TODAY


@dataclass(frozen=True)
class AwaitingCode:
    kind: ClassVar[SessionState] = SessionState.AWAITING_CODE
    draft: GoalDraft
    skipped_goal: Optional[PlannedGoal] = None
    extraction_seq: Optional[int] = None


@dataclass(frozen=True)
class GoalActive:
    kind: ClassVar[SessionState] = SessionState.GOAL_ACTIVE
    active: ActiveGoalState
    skipped_goal: Optional[PlannedGoal] = None
    feedback: Optional[VerificationFeedback] = None
    deadline_passed: bool = False


@dataclass(frozen=True)
class VerifyingProof:
    kind: ClassVar[SessionState] = SessionState.VERIFYING_PROOF
    active: ActiveGoalState
    seq: int
    paused_at: datetime
    skipped_goal: Optional[PlannedGoal] = None
    feedback: Optional[VerificationFeedback] = None


@dataclass(frozen=True)
class GoalCompleted:
    kind: ClassVar[SessionState] = SessionState.GOAL_COMPLETED
    record: Optional[CompletedGoalRecord] = None
    feedback: Optional[VerificationFeedback] = None
    day_finished: bool = False


@dataclass(frozen=True)
class AwaitingBreakChoice:
    kind: ClassVar[SessionState] = SessionState.AWAITING_BREAK_CHOICE
    record: CompletedGoalRecord
    allocation: BreakAllocation
    feedback: Optional[VerificationFeedback] = None


@dataclass(frozen=True)
class BreakActive:
    kind: ClassVar[SessionState] = SessionState.BREAK_ACTIVE
    allocation: BreakAllocation
    next_goal: PlannedGoal
    secret_code: Optional[str] = None
    extraction_seq: Optional[int] = None


@dataclass(frozen=True)
class HistoryView:
    kind: ClassVar[SessionState] = SessionState.HISTORY_VIEW


@dataclass(frozen=True)
class WeeklyPlanView:
    kind: ClassVar[SessionState] = SessionState.WEEKLY_PLAN_VIEW
    week_start: date


# -- effects --

@dataclass(frozen=True)
class SavePlan:
    plan: DailyPlan


@dataclass(frozen=True)
class SaveStreak:
    streak: StreakData


@dataclass(frozen=True)
class SaveActiveGoal:
    state: ActiveGoalState


@dataclass(frozen=True)
class ClearActiveGoal:
    pass


@dataclass(frozen=True)
class AppendHistory:
    """``record.goal_summary`` is None when the label still has to be summarized."""
    record: CompletedGoalRecord


@dataclass(frozen=True)
class RequestCodeExtraction:
    seq: int
    image: Any


@dataclass(frozen=True)
class RequestVerification:
    seq: int
    goal_description: str
    proof: Any


@dataclass(frozen=True)
class RequestFollowUp:
    seq: int
    message: str


@dataclass(frozen=True)
class Snapshot:
    state: Any
    plan: DailyPlan
    streak: StreakData
    active_goal: Optional[ActiveGoalState]
    countdowns: dict = field(default_factory=dict)
    error: Optional[str] = None
    message: Optional[str] = None
    skips_left: int = 0

    @property
    def day_finished(self) -> bool:
        return self.state.kind == SessionState.PLANNING_TODAY and self.plan.is_finished


_ANY_STATE = frozenset(SessionState)

# Intents accepted in each state. Results of external calls are accepted
# everywhere so that late, superseded responses can be dropped quietly.
TRANSITIONS: dict[IntentKind, frozenset[SessionState]] = {
    IntentKind.START_GOAL: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.SUBMIT_CODE: frozenset({SessionState.AWAITING_CODE, SessionState.BREAK_ACTIVE}),
    IntentKind.CODE_EXTRACTED: _ANY_STATE,
    IntentKind.EXTRACTION_FAILED: _ANY_STATE,
    IntentKind.SUBMIT_PROOF: frozenset({SessionState.GOAL_ACTIVE, SessionState.VERIFYING_PROOF}),
    IntentKind.FOLLOW_UP: frozenset({SessionState.GOAL_ACTIVE}),
    IntentKind.VERIFICATION_RESULT: _ANY_STATE,
    IntentKind.VERIFICATION_FAILED: _ANY_STATE,
    IntentKind.SKIP_GOAL: frozenset({SessionState.GOAL_ACTIVE}),
    IntentKind.ABANDON_GOAL: frozenset({SessionState.GOAL_ACTIVE}),
    IntentKind.PICK_NEXT_GOAL: frozenset({SessionState.AWAITING_BREAK_CHOICE}),
    IntentKind.ACKNOWLEDGE: frozenset({SessionState.GOAL_COMPLETED}),
    IntentKind.CANCEL: frozenset({SessionState.AWAITING_CODE, SessionState.BREAK_ACTIVE}),
    IntentKind.SHOW_HISTORY: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.SHOW_WEEK: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.NAVIGATE_WEEK: frozenset({SessionState.WEEKLY_PLAN_VIEW}),
    IntentKind.BACK: frozenset({SessionState.HISTORY_VIEW, SessionState.WEEKLY_PLAN_VIEW}),
    IntentKind.ADD_GOAL: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.EDIT_GOAL: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.REMOVE_GOAL: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.REORDER_PLAN: frozenset({SessionState.PLANNING_TODAY}),
    IntentKind.SET_COMMITMENT: _ANY_STATE,
    IntentKind.COMPLETE_COMMITMENT: _ANY_STATE,
    IntentKind.TICK: _ANY_STATE,
}

INVARIANT_RESET_MESSAGE = (
    "The break ended but the next goal's code was never sequestered. "
    "Pick a goal from today's plan to start again."
)
NO_BREAK_MESSAGE = "No break left after tax. Lock away the next goal's code to start it right away."


class SessionStateMachine:
    def __init__(
        self,
        plan: DailyPlan,
        streak: StreakData | None = None,
        active_goal: ActiveGoalState | None = None,
        clock=None,
        rules: Rules = DEFAULT_RULES,
    ):
        self.clock = clock or SystemClock()
        self.rules = rules
        self.plan = plan
        self.streak = normalize_streak(streak, self.clock.now().date())
        self.countdowns = CountdownController()
        self.state = PlanningToday()
        self.error: str | None = None
        self.message: str | None = None
        self._seq = 0
        if active_goal is not None:
            self.state = self._enter_active(active_goal, self.clock.now())
            logger.info(f"Resumed active goal '{active_goal.subject or active_goal.description[:30]}'")

    # -- public api --

    def intent(self, kind: IntentKind | str, payload: dict | None = None) -> tuple[Any, list]:
        kind = IntentKind(kind)
        payload = payload or {}
        if self.state.kind not in TRANSITIONS[kind]:
            raise StateError(f"Cannot {kind.value.replace('_', ' ')} while {self.state.kind.value.replace('_', ' ')}")
        before = self.state.kind
        handler = getattr(self, f"_on_{kind.value}")
        try:
            effects = handler(self.clock.now(), payload)
        except StaleResponse as e:
            logger.debug(f"Dropping {kind.value}: {e}")
            return self.state, []
        if kind is not IntentKind.TICK or self.state.kind != before:
            logger.info(f"{before.value} --{kind.value}--> {self.state.kind.value}")
        return self.state, effects

    def snapshot(self) -> Snapshot:
        now = self.clock.now()
        return Snapshot(
            state=self.state,
            plan=self.plan,
            streak=self.streak,
            active_goal=getattr(self.state, "active", None),
            countdowns=self.countdowns.remainders(now),
            error=self.error,
            message=self.message,
            skips_left=skips_left(self.streak, self.rules),
        )

    def replace_plan(self, plan: DailyPlan) -> None:
        """Switch to another day's plan, e.g. after midnight."""
        if self.state.kind != SessionState.PLANNING_TODAY:
            raise StateError("The plan can only be switched from today's plan view")
        self.plan = plan

    def is_reflection(self, active: ActiveGoalState) -> bool:
        return active.subject == self.rules.reflection_subject

    def verification_goal(self, active: ActiveGoalState, at: datetime) -> str:
        """The goal proof is judged against. Past the deadline the consequence is added to it."""
        if not active.consequence or active.deadline is None or at < active.deadline:
            return active.description
        return self.rules.consequence_goal.format(goal=active.description, consequence=active.consequence)

    # -- helpers --

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _commit(self, state, plan=None, streak=None, error=None, message=None) -> None:
        """Apply a computed transition. Nothing is assigned before this point."""
        self.state = state
        if plan is not None:
            self.plan = plan
        if streak is not None:
            self.streak = streak
        self.error = error
        self.message = message

    def _enter_active(self, active: ActiveGoalState, now: datetime, **fields) -> GoalActive:
        self.countdowns.cancel(CountdownKind.GOAL_DEADLINE)
        passed = False
        if active.deadline is not None:
            passed = now >= active.deadline
            if not passed:
                self.countdowns.arm_until(CountdownKind.GOAL_DEADLINE, active.deadline)
        return GoalActive(active=active, deadline_passed=passed, **fields)

    def _start_tax(self, plan: DailyPlan, streak: StreakData, goal: PlannedGoal, now: datetime):
        """Charge lateness tax for starting ``goal`` now and shift later goals if needed."""
        tax = goal_lateness_tax(plan.date, goal, now, self.rules)
        if not tax:
            return plan, streak, []
        streak = add_tax(streak, tax)
        plan = cascade_reschedule(plan, goal, now, goal.estimated_duration, self.rules)
        logger.info(f"Started '{goal.subject or goal.id}' late, tax {tax} (accrued {streak.accrued_tax})")
        return plan, streak, [SavePlan(plan), SaveStreak(streak)]

    # -- planning --

    def _on_start_goal(self, now: datetime, payload: dict) -> list:
        plan, streak, effects = self.plan, self.streak, []
        consequence = (payload.get("consequence") or "").strip() or None
        goal_id = payload.get("goal_id")
        if goal_id:
            goal = planner.require_goal(plan, goal_id)
            if not goal.is_pending:
                raise ValidationError(f"Goal is already {goal.status.value}")
            if not goal.description.strip():
                raise ValidationError("Please edit the goal to add a description before starting. It cannot be empty.")
            plan, streak, effects = self._start_tax(plan, streak, goal, now)
            draft = GoalDraft(goal.description, goal.subject, goal.planned_duration, goal.id, consequence)
        else:
            description = (payload.get("description") or "").strip()
            if not description:
                raise ValidationError("Goal description cannot be empty.")
            draft = GoalDraft(description, payload.get("subject", ""), payload.get("time_limit"), consequence=consequence)
        self._commit(AwaitingCode(draft=draft), plan=plan, streak=streak)
        return effects

    def _on_add_goal(self, now: datetime, payload: dict) -> list:
        goal = planner.make_goal(
            self.plan.date,
            payload.get("description", ""),
            payload.get("subject", ""),
            payload.get("scheduled_start"),
            payload.get("scheduled_end"),
            payload.get("estimated_duration"),
        )
        plan = planner.add_goal(self.plan, goal)
        self._commit(self.state, plan=plan, message=f"Added '{goal.subject or goal.description[:30]}'")
        return [SavePlan(plan)]

    def _on_edit_goal(self, now: datetime, payload: dict) -> list:
        changes = {k: v for k, v in payload.items() if k != "goal_id"}
        plan = planner.edit_goal(self.plan, payload.get("goal_id"), **changes)
        self._commit(self.state, plan=plan)
        return [SavePlan(plan)]

    def _on_remove_goal(self, now: datetime, payload: dict) -> list:
        plan = planner.remove_goal(self.plan, payload.get("goal_id"))
        self._commit(self.state, plan=plan)
        return [SavePlan(plan)]

    def _on_reorder_plan(self, now: datetime, payload: dict) -> list:
        plan = planner.apply_reordering(self.plan, list(payload.get("goals", [])))
        self._commit(self.state, plan=plan)
        return [SavePlan(plan)]

    def _on_show_history(self, now: datetime, payload: dict) -> list:
        self._commit(HistoryView())
        return []

    def _on_show_week(self, now: datetime, payload: dict) -> list:
        self._commit(WeeklyPlanView(week_start=week_start(payload.get("day") or self.plan.date)))
        return []

    def _on_navigate_week(self, now: datetime, payload: dict) -> list:
        direction = payload.get("direction", "next")
        step = {"next": 7, "prev": -7}.get(direction)
        if step is None:
            raise ValidationError(f"Unknown direction '{direction}'")
        self._commit(WeeklyPlanView(week_start=self.state.week_start + timedelta(days=step)))
        return []

    def _on_back(self, now: datetime, payload: dict) -> list:
        self._commit(PlanningToday())
        return []

    # -- code sequestering --

    def _on_submit_code(self, now: datetime, payload: dict) -> list:
        seq = self._next_seq()
        self._commit(replace(self.state, extraction_seq=seq), message="Reading code...")
        return [RequestCodeExtraction(seq=seq, image=payload.get("image"))]

    def _expect_extraction(self, seq) -> None:
        pending = getattr(self.state, "extraction_seq", None)
        if pending is None or seq != pending:
            raise StaleResponse(seq, pending)

    def _on_code_extracted(self, now: datetime, payload: dict) -> list:
        self._expect_extraction(payload.get("seq"))
        code = payload["code"]
        if isinstance(self.state, BreakActive):
            self._commit(
                replace(self.state, secret_code=code, extraction_seq=None),
                message="Code locked away. The next goal starts when the break ends.",
            )
            if not self.countdowns.is_armed(CountdownKind.BREAK_REMAINING):
                return self._break_over(now)
            return []
        draft = self.state.draft
        active = ActiveGoalState(
            description=draft.description,
            subject=draft.subject,
            activated_at=now,
            time_limit=draft.time_limit,
            planned_goal_id=draft.planned_goal_id,
            secret_code=code,
            consequence=draft.consequence,
        )
        self._commit(self._enter_active(active, now, skipped_goal=self.state.skipped_goal))
        return [SaveActiveGoal(active)]

    def _on_extraction_failed(self, now: datetime, payload: dict) -> list:
        self._expect_extraction(payload.get("seq"))
        self._commit(replace(self.state, extraction_seq=None), error=payload.get("error") or "Could not read the code.")
        return []

    def _on_cancel(self, now: datetime, payload: dict) -> list:
        self.countdowns.cancel_all()
        self._commit(PlanningToday())
        return [ClearActiveGoal()]

    # -- active goal --

    def _on_submit_proof(self, now: datetime, payload: dict) -> list:
        seq = self._next_seq()
        state = self.state
        paused_at = state.paused_at if isinstance(state, VerifyingProof) else now
        self.countdowns.cancel(CountdownKind.GOAL_DEADLINE)
        self._commit(VerifyingProof(
            active=state.active, seq=seq, paused_at=paused_at,
            skipped_goal=state.skipped_goal, feedback=state.feedback,
        ))
        goal = self.verification_goal(state.active, paused_at)
        return [RequestVerification(seq=seq, goal_description=goal, proof=payload.get("proof"))]

    def _on_follow_up(self, now: datetime, payload: dict) -> list:
        message = (payload.get("message") or "").strip()
        if self.state.feedback is None:
            raise ValidationError("There is no verification to discuss yet. Submit proof first.")
        if not message:
            raise ValidationError("Message cannot be empty.")
        seq = self._next_seq()
        state = self.state
        self.countdowns.cancel(CountdownKind.GOAL_DEADLINE)
        self._commit(VerifyingProof(
            active=state.active, seq=seq, paused_at=now,
            skipped_goal=state.skipped_goal, feedback=state.feedback,
        ))
        return [RequestFollowUp(seq=seq, message=message)]

    def _expect_verification(self, seq) -> None:
        if not isinstance(self.state, VerifyingProof):
            raise StaleResponse(seq, None)
        if self.state.seq != seq:
            raise StaleResponse(seq, self.state.seq)

    def _resume(self, now: datetime, feedback, error=None) -> list:
        """Back to GoalActive with the time spent waiting on the verifier given back."""
        state = self.state
        paused = now - state.paused_at
        active = replace(state.active, activated_at=state.active.activated_at + paused)
        self._commit(self._enter_active(active, now, skipped_goal=state.skipped_goal, feedback=feedback), error=error)
        return [SaveActiveGoal(active)]

    def _on_verification_result(self, now: datetime, payload: dict) -> list:
        self._expect_verification(payload.get("seq"))
        result: VerificationResult = payload["result"]
        if not result.completed:
            return self._resume(now, result.feedback)
        return self._complete(now, result.feedback)

    def _on_verification_failed(self, now: datetime, payload: dict) -> list:
        self._expect_verification(payload.get("seq"))
        error = payload.get("error") or "Verification is unavailable right now. Please try again."
        return self._resume(now, self.state.feedback, error=error)

    def _complete(self, now: datetime, feedback) -> list:
        state = self.state
        active = state.active
        reflection = self.is_reflection(active)
        plan, streak = self.plan, self.streak
        effects: list = [ClearActiveGoal()]

        planned = plan.get(active.planned_goal_id) if active.planned_goal_id else None
        if planned is not None and planned.is_pending:
            plan = planner.set_status(plan, planned.id, GoalStatus.COMPLETED)
            planned = plan.get(planned.id)
            effects.append(SavePlan(plan))

        record = CompletedGoalRecord(
            full_goal=active.description,
            subject=active.subject,
            start_time=active.activated_at,
            end_time=now,
            duration=now - active.activated_at,
            completion_reason=CompletionReason.SKIPPED if reflection else CompletionReason.VERIFIED,
            goal_summary=self.rules.reflection_summary if reflection else None,
        )
        effects.append(AppendHistory(record))

        streak_before = streak
        if not reflection:
            streak = record_completion(streak, now.date())
            if active.secret_code:
                streak = replace(streak, last_unlocked_code=active.secret_code)

        context = state.skipped_goal if reflection else planned
        allocated = allocate_break(context, plan.goals, streak)
        self.countdowns.cancel_all()
        if allocated is None:
            new_state = GoalCompleted(record=record, feedback=feedback, day_finished=plan.is_finished)
        else:
            allocation, streak = allocated
            new_state = AwaitingBreakChoice(record=record, allocation=allocation, feedback=feedback)
            self.countdowns.arm(CountdownKind.NEXT_GOAL_SELECTION, now, self.rules.selection_window)
            logger.info(f"Break of {allocation.duration_remaining} earned (tax applied: {allocation.applied_tax})")
        if streak != streak_before:
            effects.append(SaveStreak(streak))
        self._commit(new_state, plan=plan, streak=streak)
        return effects

    def _on_skip_goal(self, now: datetime, payload: dict) -> list:
        state = self.state
        goal_id = state.active.planned_goal_id
        goal = self.plan.get(goal_id) if goal_id else None
        if goal is None or not goal.is_pending:
            raise ValidationError("Only a goal from today's plan can be skipped.")
        streak = record_skip(self.streak, now.date(), self.rules)
        plan = planner.set_status(self.plan, goal.id, GoalStatus.SKIPPED)
        draft = GoalDraft(
            description=self.rules.reflection_description,
            subject=self.rules.reflection_subject,
            time_limit=self.rules.reflection_time_limit,
        )
        self.countdowns.cancel(CountdownKind.GOAL_DEADLINE)
        self._commit(AwaitingCode(draft=draft, skipped_goal=goal), plan=plan, streak=streak)
        return [ClearActiveGoal(), SaveStreak(streak), SavePlan(plan)]

    def _on_abandon_goal(self, now: datetime, payload: dict) -> list:
        goal_id = self.state.active.planned_goal_id
        if not goal_id or self.plan.get(goal_id) is None:
            raise ValidationError("Only a goal from today's plan can be abandoned.")
        plan = planner.remove_goal(self.plan, goal_id)
        self.countdowns.cancel_all()
        self._commit(PlanningToday(), plan=plan)
        return [ClearActiveGoal(), SavePlan(plan)]

    # -- completion and breaks --

    def _on_acknowledge(self, now: datetime, payload: dict) -> list:
        self._commit(PlanningToday())
        return []

    def _enter_break(self, now: datetime, goal: PlannedGoal) -> BreakActive:
        allocation = self.state.allocation
        self.countdowns.cancel(CountdownKind.NEXT_GOAL_SELECTION)
        if allocation.duration_remaining > timedelta(0):
            self.countdowns.arm(CountdownKind.BREAK_REMAINING, now, allocation.duration_remaining)
        return BreakActive(allocation=allocation, next_goal=goal)

    def _on_pick_next_goal(self, now: datetime, payload: dict) -> list:
        goal = planner.require_goal(self.plan, payload.get("goal_id"))
        if not goal.is_pending:
            raise ValidationError(f"Goal is already {goal.status.value}")
        if not goal.description.strip():
            raise ValidationError("Please edit the goal to add a description before picking it.")
        state = self._enter_break(now, goal)
        self._commit(state, message=None if state.allocation.duration_remaining else NO_BREAK_MESSAGE)
        return []

    def _auto_pick(self, now: datetime) -> list:
        goal = planner.earliest_pending(self.plan)
        if goal is None:
            state = self.state
            self.countdowns.cancel_all()
            self._commit(GoalCompleted(record=state.record, feedback=state.feedback, day_finished=True))
            return []
        logger.info(f"No goal picked in time, auto-picking '{goal.subject or goal.id}'")
        state = self._enter_break(now, goal)
        message = f"Next up: {goal.subject or goal.description[:30]}"
        if not state.allocation.duration_remaining:
            message = f"{message}. {NO_BREAK_MESSAGE}"
        self._commit(state, message=message)
        return []

    def _break_over(self, now: datetime) -> list:
        state = self.state
        goal = self.plan.get(state.next_goal.id)
        try:
            if not state.secret_code:
                raise InvariantViolation("break expired without a prepared next goal")
            if goal is None or not goal.is_pending:
                raise InvariantViolation(f"prepared goal {state.next_goal.id} is no longer pending")
        except InvariantViolation as e:
            logger.error(f"Resetting session: {e}")
            self.countdowns.cancel_all()
            self._commit(PlanningToday(), error=INVARIANT_RESET_MESSAGE)
            return [ClearActiveGoal()]

        plan, streak, effects = self._start_tax(self.plan, self.streak, goal, now)
        active = ActiveGoalState(
            description=goal.description,
            subject=goal.subject,
            activated_at=now,
            time_limit=goal.planned_duration,
            planned_goal_id=goal.id,
            secret_code=state.secret_code,
        )
        self._commit(self._enter_active(active, now), plan=plan, streak=streak)
        return effects + [SaveActiveGoal(active)]

    # -- streak --

    def _on_set_commitment(self, now: datetime, payload: dict) -> list:
        streak = set_commitment(self.streak, now.date(), payload.get("text", ""))
        self.streak = streak
        return [SaveStreak(streak)]

    def _on_complete_commitment(self, now: datetime, payload: dict) -> list:
        streak = complete_commitment(self.streak, now.date())
        if streak == self.streak:
            return []
        self.streak = streak
        return [SaveStreak(streak)]

    # -- clock --

    def _on_tick(self, now: datetime, payload: dict) -> list:
        effects = []
        streak = normalize_streak(self.streak, now.date())
        if streak != self.streak:
            self.streak = streak
            effects.append(SaveStreak(streak))
        for kind in self.countdowns.pop_expired(now):
            if kind is CountdownKind.GOAL_DEADLINE and isinstance(self.state, GoalActive):
                logger.warning(f"Time is up for '{self.state.active.subject or self.state.active.description[:30]}'")
                self.state = replace(self.state, deadline_passed=True)
            elif kind is CountdownKind.NEXT_GOAL_SELECTION and isinstance(self.state, AwaitingBreakChoice):
                effects += self._auto_pick(now)
            elif kind is CountdownKind.BREAK_REMAINING and isinstance(self.state, BreakActive):
                effects += self._break_over(now)
        return effects
