"""Seed new daily plans from the weekly schedule template."""
from datetime import date
from pathlib import Path

import yaml

from goal_unbox.models import DailyPlan, PlannedGoal
from goal_unbox.timeutils import normalize_end_time

CONTENT_DIR = Path(__file__).parent / "content"
DEFAULT_TEMPLATE_PATH = CONTENT_DIR / "weekly_schedule.yaml"
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def load_template(path: Path | str = DEFAULT_TEMPLATE_PATH) -> dict:
    """Load a weekly schedule template from YAML."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return {"templates": data.get("templates") or {}, "days": data.get("days") or {}}


def goals_for_day(day: date, template: dict | None = None) -> list[PlannedGoal]:
    """Pending goals for ``day`` according to the template. Ids are stable per date."""
    template = template if template is not None else load_template()
    crm_text = template["templates"].get("crm", "")
    entries = template["days"].get(WEEKDAYS[day.weekday()]) or []
    goals = []
    for n, entry in enumerate(entries, 1):
        subject = str(entry.get("subject", ""))
        description = entry.get("description") or (crm_text if "crm" in subject.lower() else "")
        goals.append(PlannedGoal(
            id=f"{day.isoformat()}-{n:02d}",
            description=description,
            subject=subject,
            scheduled_start=str(entry["start"]),
            scheduled_end=normalize_end_time(str(entry["end"])),
        ))
    return goals


def plan_from_template(day: date, template: dict | None = None) -> DailyPlan:
    return DailyPlan(date=day, goals=tuple(goals_for_day(day, template)))
