"""Daily plan editing and weekly plan loading."""
import uuid
from dataclasses import replace
from datetime import date, timedelta

from loguru import logger

from goal_unbox.errors import ValidationError
from goal_unbox.models import DailyPlan, GoalStatus, PlannedGoal
from goal_unbox.scheduler import sort_goals, validate_plan
from goal_unbox.seed import plan_from_template
from goal_unbox.timeutils import normalize_end_time, parse_hhmm, week_start

EDITABLE_FIELDS = {"description", "subject", "scheduled_start", "scheduled_end", "estimated_duration"}


def new_goal_id(day: date) -> str:
    return f"{day.isoformat()}-{uuid.uuid4().hex[:8]}"


def _check_times(start: str | None, end: str | None) -> tuple[str | None, str | None]:
    for value in (start, end):
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Invalid time '{value}'. Use HH:MM")
    if bool(start) != bool(end):
        raise ValidationError("A goal needs both a start and an end time, or neither")
    if not start:
        return None, None
    end = normalize_end_time(end)
    if parse_hhmm(start) is None or parse_hhmm(end) is None:
        raise ValidationError(f"Invalid time range '{start}-{end}'. Use HH:MM")
    return start.strip(), end


def make_goal(
    day: date,
    description: str,
    subject: str = "",
    scheduled_start: str | None = None,
    scheduled_end: str | None = None,
    estimated_duration: timedelta | None = None,
) -> PlannedGoal:
    start, end = _check_times(scheduled_start, scheduled_end)
    return PlannedGoal(
        id=new_goal_id(day),
        description=description.strip(),
        subject=subject.strip(),
        scheduled_start=start,
        scheduled_end=end,
        estimated_duration=estimated_duration,
    )


def add_goal(plan: DailyPlan, goal: PlannedGoal) -> DailyPlan:
    if plan.get(goal.id) is not None:
        raise ValidationError(f"Goal {goal.id} already exists")
    updated = replace(plan, goals=plan.goals + (goal,))
    validate_plan(updated)
    return updated


def edit_goal(plan: DailyPlan, goal_id: str, **changes) -> DailyPlan:
    goal = require_goal(plan, goal_id)
    if not goal.is_pending:
        raise ValidationError(f"Goal is already {goal.status.value} and can no longer be edited")
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot edit {', '.join(sorted(unknown))}")
    start = changes.get("scheduled_start", goal.scheduled_start)
    end = changes.get("scheduled_end", goal.scheduled_end)
    changes["scheduled_start"], changes["scheduled_end"] = _check_times(start, end)
    updated = plan.replace_goal(replace(goal, **changes))
    validate_plan(updated)
    return updated


def remove_goal(plan: DailyPlan, goal_id: str) -> DailyPlan:
    require_goal(plan, goal_id)
    return replace(plan, goals=tuple(g for g in plan.goals if g.id != goal_id))


def set_status(plan: DailyPlan, goal_id: str, status: GoalStatus) -> DailyPlan:
    goal = require_goal(plan, goal_id)
    return plan.replace_goal(goal.with_status(status))


def require_goal(plan: DailyPlan, goal_id: str) -> PlannedGoal:
    goal = plan.get(goal_id)
    if goal is None:
        raise ValidationError(f"No goal {goal_id} in the plan for {plan.date.isoformat()}")
    return goal


def earliest_pending(plan: DailyPlan) -> PlannedGoal | None:
    pending = sort_goals(plan.pending())
    return pending[0] if pending else None


def apply_reordering(plan: DailyPlan, reordered: list[PlannedGoal]) -> DailyPlan:
    """Accept a reordered goal list from a schedule oracle.

    The oracle may only move pending goals; the set of goals must not change.
    """
    if {g.id for g in reordered} != {g.id for g in plan.goals}:
        raise ValidationError("Reordered schedule must contain exactly the plan's goals")
    for goal in reordered:
        original = plan.get(goal.id)
        if not original.is_pending and goal != original:
            raise ValidationError(f"Goal {goal.id} is {original.status.value} and cannot be moved")
        if goal.status != original.status:
            raise ValidationError(f"Reordering cannot change the status of goal {goal.id}")
    updated = replace(plan, goals=tuple(reordered))
    validate_plan(updated)
    return updated


def get_or_create_plan(store, day: date, seed: bool = True) -> DailyPlan:
    """Load the plan for ``day``, creating (and saving) it on first access."""
    plan = store.load_plan(day)
    if plan is not None:
        return plan
    plan = plan_from_template(day) if seed else DailyPlan(date=day)
    store.save_plan(plan)
    logger.info(f"Created plan for {day.isoformat()} with {len(plan.goals)} goal(s)")
    return plan


def load_week(store, any_day: date) -> list[DailyPlan]:
    """Plans for the ISO week containing ``any_day``; missing days come back empty, unsaved."""
    monday = week_start(any_day)
    days = [monday + timedelta(days=i) for i in range(7)]
    return [store.load_plan(d) or DailyPlan(date=d) for d in days]
