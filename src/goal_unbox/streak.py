"""Streak, weekly skip allowance, daily commitment and tax bookkeeping."""
from dataclasses import replace
from datetime import date, timedelta

from goal_unbox.config import DEFAULT_RULES
from goal_unbox.errors import ValidationError
from goal_unbox.models import DailyCommitment, StreakData
from goal_unbox.timeutils import week_start


def new_streak(today: date) -> StreakData:
    return StreakData(week_start=week_start(today))


def normalize_streak(streak: StreakData | None, today: date) -> StreakData:
    """Roll stale fields forward to ``today``.

    A streak survives only if the last completion was today or yesterday, a
    commitment only lives for its own date, and skips reset every Monday.
    """
    if streak is None:
        return new_streak(today)
    updates = {}
    last = streak.last_completion_date
    if last is not None and last not in (today, today - timedelta(days=1)):
        updates["current_streak"] = 0
    if streak.commitment is not None and streak.commitment.date != today:
        updates["commitment"] = None
    current_week = week_start(today)
    if streak.week_start != current_week:
        updates["skips_this_week"] = 0
        updates["week_start"] = current_week
    return replace(streak, **updates) if updates else streak


def add_tax(streak: StreakData, tax: timedelta) -> StreakData:
    if tax <= timedelta(0):
        return streak
    return replace(streak, accrued_tax=streak.accrued_tax + tax)


def skips_left(streak: StreakData, rules=DEFAULT_RULES) -> int:
    return max(0, rules.max_skips_per_week - streak.skips_this_week)


def record_skip(streak: StreakData, today: date, rules=DEFAULT_RULES) -> StreakData:
    streak = normalize_streak(streak, today)
    if streak.skips_this_week >= rules.max_skips_per_week:
        raise ValidationError(f"No skips left this week ({rules.max_skips_per_week} used)")
    return replace(streak, skips_this_week=streak.skips_this_week + 1)


def record_completion(streak: StreakData, today: date) -> StreakData:
    """Count ``today`` towards the streak, once per day."""
    if streak.last_completion_date == today:
        return streak
    return replace(streak, current_streak=streak.current_streak + 1, last_completion_date=today)


def set_commitment(streak: StreakData, today: date, text: str) -> StreakData:
    if not text or not text.strip():
        raise ValidationError("Commitment cannot be empty")
    return replace(streak, commitment=DailyCommitment(date=today, text=text.strip()))


def complete_commitment(streak: StreakData, today: date) -> StreakData:
    commitment = streak.commitment
    if commitment is None or commitment.date != today:
        raise ValidationError("No commitment set for today")
    if commitment.completed:
        return streak
    streak = replace(streak, commitment=replace(commitment, completed=True))
    return record_completion(streak, today)
