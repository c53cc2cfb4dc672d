"""Collaborator contracts consumed by the session engine."""
from datetime import date
from typing import Any, Optional, Protocol

from loguru import logger

from goal_unbox.config import DEFAULT_RULES
from goal_unbox.models import (
    ActiveGoalState, CompletedGoalRecord, DailyPlan, PlannedGoal, StreakData, VerificationResult,
)


class PersistencePort(Protocol):
    def load_plan(self, day: date) -> Optional[DailyPlan]: ...

    def save_plan(self, plan: DailyPlan) -> None: ...

    def load_active_goal(self) -> Optional[ActiveGoalState]: ...

    def save_active_goal(self, state: ActiveGoalState) -> None: ...

    def clear_active_goal(self) -> None: ...

    def load_streak(self) -> Optional[StreakData]: ...

    def save_streak(self, streak: StreakData) -> None: ...

    def append_history(self, record: CompletedGoalRecord) -> CompletedGoalRecord: ...


class VerificationPort(Protocol):
    def verify(self, goal_description: str, proof: Any) -> VerificationResult: ...

    def follow_up(self, message: str) -> VerificationResult:
        """Continue the last verification as a conversation."""
        ...


class CodeExtractionPort(Protocol):
    def extract_code(self, image: Any) -> str:
        """Return the sequestered code. Raises ExtractionError if none is found."""
        ...


class SummarizationPort(Protocol):
    def summarize(self, goal_description: str) -> str: ...


class ScheduleOraclePort(Protocol):
    def reorder(self, goals: list[PlannedGoal]) -> list[PlannedGoal]: ...


def truncate_summary(text: str, max_length: int = DEFAULT_RULES.summary_max_length) -> str:
    return text if len(text) <= max_length else text[: max_length - 3] + "..."


def summarize_or_truncate(
    summarizer: Optional[SummarizationPort], text: str, max_length: int = DEFAULT_RULES.summary_max_length
) -> str:
    """History label for a goal; never fails."""
    if summarizer is None:
        return truncate_summary(text, max_length)
    try:
        summary = summarizer.summarize(text).strip()
    except Exception as e:
        logger.warning(f"Summarization failed, truncating instead: {e}")
        return truncate_summary(text, max_length)
    return summary or truncate_summary(text, max_length)
