"""Paths and scheduling rules."""
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from pathlib import Path

import yaml
from loguru import logger

APP_DIR = Path.home() / ".goal_unbox"
DEFAULT_DB_PATH = str(APP_DIR / "goals.db")
DEFAULT_CONFIG_PATH = str(APP_DIR / "config.yaml")
DEFAULT_LOG_PATH = str(APP_DIR / "goal_unbox.log")

REFLECTION_SUBJECT = "Accountability Reflection"
REFLECTION_DESCRIPTION = (
    "Write a few sentences on why the previous goal was skipped and what can be "
    "done differently next time. Submit a screenshot of your notes as proof."
)
REFLECTION_SUMMARY = "Skipped goal reflection"
CONSEQUENCE_GOAL = (
    'Original goal: "{goal}"\n\n'
    'Time is up. Consequence added: "{consequence}"'
)

# Keys in the YAML file holding a number of seconds.
_DURATION_KEYS = {"grace_period", "selection_window", "reflection_time_limit"}


@dataclass(frozen=True)
class Rules:
    grace_period: timedelta = timedelta(minutes=1)
    tax_rate: float = 0.25
    max_skips_per_week: int = 2
    selection_window: timedelta = timedelta(seconds=120)
    reflection_time_limit: timedelta = timedelta(minutes=5)
    reflection_subject: str = REFLECTION_SUBJECT
    reflection_description: str = REFLECTION_DESCRIPTION
    reflection_summary: str = REFLECTION_SUMMARY
    summary_max_length: int = 50
    consequence_goal: str = CONSEQUENCE_GOAL


DEFAULT_RULES = Rules()


def load_rules(config_path: str = DEFAULT_CONFIG_PATH) -> Rules:
    """Load rule overrides from a YAML file. Missing file or unknown keys are ignored."""
    path = Path(config_path)
    if not path.exists():
        return DEFAULT_RULES
    data = yaml.safe_load(path.read_text()) or {}
    rules_data = data.get("rules", data) if isinstance(data, dict) else {}
    known = {f.name for f in fields(Rules)}
    overrides = {}
    for key, value in rules_data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown rule '{key}' in {config_path}")
            continue
        overrides[key] = timedelta(seconds=float(value)) if key in _DURATION_KEYS else value
    return replace(DEFAULT_RULES, **overrides)
