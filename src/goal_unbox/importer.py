"""Import goals for a day from YAML, JSON or plain text files."""
import json
import re
from datetime import date, timedelta
from pathlib import Path

import yaml
from loguru import logger

from goal_unbox.errors import ValidationError
from goal_unbox.models import DailyPlan
from goal_unbox.planner import add_goal, make_goal
from goal_unbox.timeutils import MINUTES_PER_DAY, format_hhmm

# "09:00-10:30 Subject: description", time range and subject both optional
LINE_PATTERN = re.compile(
    r"^\s*(?:(?P<start>\d{1,2}:\d{2})\s*-\s*(?P<end>\d{1,2}:\d{2})\s+)?"
    r"(?:(?P<subject>[^:]+?):\s+)?(?P<description>.+?)\s*$"
)


def read_file_content(file_path: str):
    """Parsed data for structured files, raw text for anything else."""
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        return json.loads(path.read_text(encoding="utf-8"))
    elif suffix in (".yaml", ".yml"):
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    else:
        return path.read_text(encoding="utf-8")


def _time_value(value):
    # YAML 1.1 reads an unquoted 10:30 as the base-60 integer 630
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MINUTES_PER_DAY:
        return format_hhmm(value)
    return value


def _entry_from_mapping(item: dict) -> dict:
    minutes = item.get("estimated_minutes")
    return {
        "description": str(item.get("description", "")),
        "subject": str(item.get("subject", "")),
        "scheduled_start": _time_value(item.get("start", item.get("scheduled_start"))),
        "scheduled_end": _time_value(item.get("end", item.get("scheduled_end"))),
        "estimated_duration": timedelta(minutes=float(minutes)) if minutes is not None else None,
    }


def _entry_from_line(line: str) -> dict | None:
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    match = LINE_PATTERN.match(line.lstrip("-* "))
    if match is None:
        return None
    return {
        "description": match["description"],
        "subject": (match["subject"] or "").strip(),
        "scheduled_start": match["start"],
        "scheduled_end": match["end"],
        "estimated_duration": None,
    }


def parse_goal_entries(file_path: str) -> list[dict]:
    """Goal fields (as accepted by ``planner.make_goal``) found in a file."""
    content = read_file_content(file_path)
    if isinstance(content, str):
        entries = [_entry_from_line(line) for line in content.splitlines()]
        return [e for e in entries if e is not None]
    if isinstance(content, dict):
        content = content.get("goals") or []
    if not isinstance(content, list):
        raise ValidationError(f"{Path(file_path).name}: expected a list of goals")
    return [_entry_from_mapping(item) for item in content if isinstance(item, dict)]


def import_goals(store, day: date, file_path: str) -> dict:
    """Add the goals from a file to the plan for ``day``. Goals that clash are left out."""
    plan = store.load_plan(day) or DailyPlan(date=day)
    imported, rejected = 0, []
    for entry in parse_goal_entries(file_path):
        try:
            plan = add_goal(plan, make_goal(day, **entry))
        except ValidationError as e:
            logger.warning(f"Skipping '{entry['description'][:30]}': {e}")
            rejected.append(entry["description"])
            continue
        imported += 1
    store.save_plan(plan)
    logger.info(f"Imported {imported} goal(s) into {day.isoformat()} from {Path(file_path).name}")
    return {"filename": Path(file_path).name, "date": day, "imported": imported, "rejected": rejected}
