"""Runs the session state machine against its collaborators."""
import threading
from collections import deque
from dataclasses import replace
from datetime import timedelta

from loguru import logger

from goal_unbox.clock import SystemClock
from goal_unbox.config import DEFAULT_RULES, Rules
from goal_unbox.errors import ValidationError
from goal_unbox.models import DailyPlan
from goal_unbox.planner import get_or_create_plan, load_week
from goal_unbox.ports import summarize_or_truncate
from goal_unbox.session import (
    AppendHistory, ClearActiveGoal, IntentKind, RequestCodeExtraction, RequestFollowUp,
    RequestVerification, SavePlan, SaveActiveGoal, SaveStreak, SessionState,
    SessionStateMachine, Snapshot, WeeklyPlanView,
)


class GoalSession:
    """One user's session: the state machine plus the ports it talks to.

    Collaborator calls are made synchronously while the dispatch lock is held;
    their outcome is fed back into the machine as a result or failure intent
    carrying the request's sequence number.
    """

    def __init__(
        self,
        store,
        clock=None,
        rules: Rules = DEFAULT_RULES,
        verifier=None,
        extractor=None,
        summarizer=None,
        oracle=None,
        seed: bool = True,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.rules = rules
        self.verifier = verifier
        self.extractor = extractor
        self.summarizer = summarizer
        self.oracle = oracle
        self.seed = seed
        self.last_record = None
        self._lock = threading.RLock()
        self._ticker: threading.Thread | None = None
        self._stop = threading.Event()

        today = self.clock.now().date()
        plan = get_or_create_plan(store, today, seed=seed)
        self.machine = SessionStateMachine(
            plan,
            streak=store.load_streak(),
            active_goal=store.load_active_goal(),
            clock=self.clock,
            rules=rules,
        )

    # -- dispatch --

    def dispatch(self, kind: IntentKind | str, payload: dict | None = None) -> Snapshot:
        with self._lock:
            _, effects = self.machine.intent(kind, payload)
            self._run(effects)
            return self.machine.snapshot()

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self.machine.snapshot()

    def tick(self) -> Snapshot:
        with self._lock:
            self._roll_day()
            return self.dispatch(IntentKind.TICK)

    def _run(self, effects: list) -> None:
        queue = deque(effects)
        while queue:
            queue.extend(self._execute(queue.popleft()))

    def _execute(self, effect) -> list:
        """Carry out one effect; returns effects produced by any follow-up intent."""
        if isinstance(effect, SavePlan):
            self.store.save_plan(effect.plan)
        elif isinstance(effect, SaveStreak):
            self.store.save_streak(effect.streak)
        elif isinstance(effect, SaveActiveGoal):
            self.store.save_active_goal(effect.state)
        elif isinstance(effect, ClearActiveGoal):
            self.store.clear_active_goal()
        elif isinstance(effect, AppendHistory):
            record = effect.record
            if record.goal_summary is None:
                summary = summarize_or_truncate(self.summarizer, record.full_goal, self.rules.summary_max_length)
                record = replace(record, goal_summary=summary)
            self.last_record = self.store.append_history(record)
        elif isinstance(effect, RequestCodeExtraction):
            return self._call(
                effect.seq,
                lambda: {"code": self._require(self.extractor, "code reader").extract_code(effect.image)},
                IntentKind.CODE_EXTRACTED,
                IntentKind.EXTRACTION_FAILED,
            )
        elif isinstance(effect, RequestVerification):
            return self._call(
                effect.seq,
                lambda: {"result": self._require(self.verifier, "verifier").verify(effect.goal_description, effect.proof)},
                IntentKind.VERIFICATION_RESULT,
                IntentKind.VERIFICATION_FAILED,
            )
        elif isinstance(effect, RequestFollowUp):
            return self._call(
                effect.seq,
                lambda: {"result": self._require(self.verifier, "verifier").follow_up(effect.message)},
                IntentKind.VERIFICATION_RESULT,
                IntentKind.VERIFICATION_FAILED,
            )
        else:
            raise TypeError(f"Unknown effect {effect!r}")
        return []

    def _call(self, seq: int, request, ok: IntentKind, failed: IntentKind) -> list:
        try:
            payload = request()
        except Exception as e:
            logger.warning(f"{failed.value} for request #{seq}: {e}")
            _, effects = self.machine.intent(failed, {"seq": seq, "error": str(e)})
            return effects
        _, effects = self.machine.intent(ok, {"seq": seq, **payload})
        return effects

    @staticmethod
    def _require(port, name: str):
        if port is None:
            raise ValidationError(f"No {name} configured")
        return port

    # -- plans --

    def _roll_day(self) -> None:
        today = self.clock.now().date()
        if self.machine.plan.date == today or self.machine.state.kind != SessionState.PLANNING_TODAY:
            return
        logger.info(f"New day {today.isoformat()}, loading its plan")
        self.machine.replace_plan(get_or_create_plan(self.store, today, seed=self.seed))

    def schedule_next_day(self) -> DailyPlan:
        """Create (or load) tomorrow's plan relative to the current one."""
        with self._lock:
            return get_or_create_plan(self.store, self.machine.plan.date + timedelta(days=1), seed=self.seed)

    def week_plans(self) -> list[DailyPlan]:
        with self._lock:
            state = self.machine.state
            anchor = state.week_start if isinstance(state, WeeklyPlanView) else self.machine.plan.date
            plans = load_week(self.store, anchor)
            return [self.machine.plan if p.date == self.machine.plan.date else p for p in plans]

    def reorder_plan(self) -> Snapshot:
        if self.oracle is None:
            raise ValidationError("No schedule optimizer configured")
        with self._lock:
            goals = self.oracle.reorder(list(self.machine.plan.goals))
            return self.dispatch(IntentKind.REORDER_PLAN, {"goals": goals})

    # -- background ticking --

    def start_ticker(self, interval: float = 1.0) -> None:
        if self._ticker is not None:
            return
        self._stop.clear()

        def run():
            while not self._stop.wait(interval):
                try:
                    self.tick()
                except Exception as e:
                    logger.exception(f"Tick failed: {e}")

        self._ticker = threading.Thread(target=run, name="goal-unbox-ticker", daemon=True)
        self._ticker.start()
        logger.debug(f"Ticker started ({interval}s)")

    def stop_ticker(self) -> None:
        if self._ticker is None:
            return
        self._stop.set()
        self._ticker.join()
        self._ticker = None
        logger.debug("Ticker stopped")
