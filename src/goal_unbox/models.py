"""Data classes for the goal scheduling domain model."""
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from goal_unbox.timeutils import span


class GoalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class CompletionReason(str, Enum):
    VERIFIED = "verified"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class PlannedGoal:
    id: str
    description: str
    subject: str = ""
    scheduled_start: Optional[str] = None  # HH:MM
    scheduled_end: Optional[str] = None  # HH:MM
    estimated_duration: Optional[timedelta] = None
    status: GoalStatus = GoalStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status == GoalStatus.PENDING

    @property
    def is_scheduled(self) -> bool:
        return bool(self.scheduled_start and self.scheduled_end)

    @property
    def planned_duration(self) -> Optional[timedelta]:
        """Explicit estimate, else the length of the scheduled slot."""
        if self.estimated_duration is not None:
            return self.estimated_duration
        return span(self.scheduled_start, self.scheduled_end)

    def with_status(self, status: GoalStatus) -> "PlannedGoal":
        if not self.is_pending and status != self.status:
            raise ValueError(f"goal {self.id} is already {self.status.value}")
        return replace(self, status=status)


@dataclass(frozen=True)
class DailyPlan:
    date: date
    goals: tuple[PlannedGoal, ...] = ()

    def get(self, goal_id: str) -> Optional[PlannedGoal]:
        return next((g for g in self.goals if g.id == goal_id), None)

    def replace_goal(self, goal: PlannedGoal) -> "DailyPlan":
        return replace(self, goals=tuple(goal if g.id == goal.id else g for g in self.goals))

    def pending(self) -> list[PlannedGoal]:
        return [g for g in self.goals if g.is_pending]

    @property
    def is_finished(self) -> bool:
        return bool(self.goals) and not self.pending()


@dataclass(frozen=True)
class ActiveGoalState:
    description: str
    subject: str
    activated_at: datetime
    time_limit: Optional[timedelta] = None
    planned_goal_id: Optional[str] = None
    secret_code: Optional[str] = None
    consequence: Optional[str] = None

    @property
    def deadline(self) -> Optional[datetime]:
        if self.time_limit is None:
            return None
        return self.activated_at + self.time_limit


@dataclass(frozen=True)
class DailyCommitment:
    date: date
    text: str
    completed: bool = False


@dataclass(frozen=True)
class StreakData:
    current_streak: int = 0
    last_completion_date: Optional[date] = None
    skips_this_week: int = 0
    week_start: Optional[date] = None
    accrued_tax: timedelta = timedelta(0)
    commitment: Optional[DailyCommitment] = None
    last_unlocked_code: Optional[str] = None


@dataclass(frozen=True)
class CompletedGoalRecord:
    full_goal: str
    subject: str
    start_time: datetime
    end_time: datetime
    duration: timedelta
    completion_reason: CompletionReason
    goal_summary: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class BreakAllocation:
    duration_remaining: timedelta
    applied_tax: timedelta
    next_goal_candidate: Optional[PlannedGoal] = None


@dataclass(frozen=True)
class VerificationFeedback:
    summary: str
    approved_aspects: tuple[str, ...] = ()
    missing_aspects: tuple[str, ...] = ()


@dataclass(frozen=True)
class VerificationResult:
    completed: bool
    feedback: VerificationFeedback = field(default_factory=lambda: VerificationFeedback(summary=""))
