"""Lateness tax and cascade rescheduling for a day's goals."""
from dataclasses import replace
from datetime import date, datetime, timedelta

from loguru import logger

from goal_unbox.config import DEFAULT_RULES
from goal_unbox.errors import ValidationError
from goal_unbox.models import DailyPlan, PlannedGoal
from goal_unbox.timeutils import LAST_MINUTE, at_time, format_hhmm, minutes_of, parse_hhmm, span

ZERO = timedelta(0)


def compute_lateness_tax(
    scheduled_start: datetime | None,
    actual_start: datetime,
    grace_period: timedelta = DEFAULT_RULES.grace_period,
    tax_rate: float = DEFAULT_RULES.tax_rate,
) -> timedelta:
    """Tax owed for starting a goal after its scheduled time.

    Args:
        scheduled_start: When the goal was supposed to start (None if unscheduled)
        actual_start: When the goal was actually started
        grace_period: Delays up to and including this are free
        tax_rate: Fraction of the delay charged as tax

    Returns:
        The tax, rounded to whole milliseconds. Zero within the grace period.
    """
    if scheduled_start is None:
        return ZERO
    delay = actual_start - scheduled_start
    if delay <= grace_period:
        return ZERO
    delay_ms = delay / timedelta(milliseconds=1)
    return timedelta(milliseconds=round(delay_ms * tax_rate))


def goal_lateness_tax(plan_date: date, goal: PlannedGoal, actual_start: datetime, rules=DEFAULT_RULES) -> timedelta:
    """Lateness tax for a planned goal, resolving its HH:MM start on the plan's date."""
    scheduled = at_time(plan_date, goal.scheduled_start)
    return compute_lateness_tax(scheduled, actual_start, rules.grace_period, rules.tax_rate)


def _starts_after(goal: PlannedGoal, minute: int) -> bool:
    start = parse_hhmm(goal.scheduled_start)
    return start is not None and start > minute


def cascade_reschedule(
    plan: DailyPlan,
    started_goal: PlannedGoal,
    actual_start: datetime,
    estimated_duration: timedelta | None = None,
    rules=DEFAULT_RULES,
) -> DailyPlan:
    """Push later pending goals forward so they don't overlap a late-started goal.

    The walk starts at the started goal's implied end and stops at the first
    goal that already starts at or after the cursor. Only shifted goals change.
    """
    original_start = parse_hhmm(started_goal.scheduled_start)
    if original_start is None:
        return plan
    if goal_lateness_tax(plan.date, started_goal, actual_start, rules) == ZERO:
        return plan

    duration = estimated_duration or started_goal.planned_duration or ZERO
    # Round partial minutes up so the next goal never starts inside this one.
    cursor = minutes_of(actual_start + duration, round_up=True, day=plan.date)

    candidates = sorted(
        (
            g for g in plan.goals
            if g.id != started_goal.id
            and g.is_pending
            and _starts_after(g, original_start)
        ),
        key=lambda g: parse_hhmm(g.scheduled_start),
    )

    shifted: dict[str, PlannedGoal] = {}
    for goal in candidates:
        if parse_hhmm(goal.scheduled_start) >= cursor:
            break
        if cursor >= LAST_MINUTE:
            logger.warning(
                f"Goal {goal.id} ({goal.scheduled_start}-{goal.scheduled_end}) no longer fits today and was left in place"
            )
            break
        length = span(goal.scheduled_start, goal.scheduled_end)
        new_start = cursor
        new_end = goal.scheduled_end
        if length is not None:
            cursor = new_start + int(length / timedelta(minutes=1))
            new_end = format_hhmm(cursor)
        shifted[goal.id] = replace(goal, scheduled_start=format_hhmm(new_start), scheduled_end=new_end)
        logger.debug(
            f"Shifted goal {goal.id} from {goal.scheduled_start}-{goal.scheduled_end} "
            f"to {shifted[goal.id].scheduled_start}-{new_end}"
        )

    if not shifted:
        return plan
    logger.info(f"Cascade reschedule moved {len(shifted)} goal(s) on {plan.date.isoformat()}")
    return replace(plan, goals=tuple(shifted.get(g.id, g) for g in plan.goals))


def sort_goals(goals) -> list[PlannedGoal]:
    """Scheduled goals by start time, then unscheduled goals by id."""
    return sorted(
        goals,
        key=lambda g: (0, parse_hhmm(g.scheduled_start) or 0, "") if g.is_scheduled else (1, 0, g.id),
    )


def _interval(goal: PlannedGoal) -> tuple[int, int] | None:
    start = parse_hhmm(goal.scheduled_start)
    length = span(goal.scheduled_start, goal.scheduled_end)
    if start is None or length is None:
        return None
    return start, start + int(length / timedelta(minutes=1))


def find_overlaps(goals) -> list[tuple[PlannedGoal, PlannedGoal]]:
    """Pairs of pending, fully scheduled goals whose [start, end) intervals intersect."""
    timed = [(g, _interval(g)) for g in goals if g.is_pending]
    timed = sorted(((g, iv) for g, iv in timed if iv is not None), key=lambda pair: pair[1])
    overlaps = []
    for i, (first, (_, first_end)) in enumerate(timed):
        for second, (second_start, _) in timed[i + 1:]:
            if second_start >= first_end:
                break
            overlaps.append((first, second))
    return overlaps


def validate_plan(plan: DailyPlan) -> None:
    overlaps = find_overlaps(plan.goals)
    if overlaps:
        first, second = overlaps[0]
        raise ValidationError(
            f"'{first.subject or first.description}' ({first.scheduled_start}-{first.scheduled_end}) overlaps "
            f"'{second.subject or second.description}' ({second.scheduled_start}-{second.scheduled_end})"
        )
