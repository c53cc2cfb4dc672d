"""Time-of-day parsing and duration formatting."""
import math
import re
from datetime import date, datetime, time, timedelta

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: str | None) -> int | None:
    """Minutes since midnight for an "HH:MM" string, or None when malformed."""
    if not value:
        return None
    match = _HHMM.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    """Render minutes since midnight, clamped to the current day."""
    minutes = max(0, min(LAST_MINUTE, minutes))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_end_time(value: str) -> str:
    """Midnight as an end time means the end of the day."""
    return "23:59" if value.strip() in ("24:00", "00:00") else value.strip()


def at_time(day: date, hhmm: str | None) -> datetime | None:
    minutes = parse_hhmm(hhmm)
    if minutes is None:
        return None
    return datetime.combine(day, time(minutes // 60, minutes % 60))


def minutes_of(moment: datetime, round_up: bool = False, day: date | None = None) -> int:
    """Minutes from midnight of ``day`` (the moment's own day by default) to ``moment``.

    Partial minutes optionally round up. Moments past the end of ``day`` count on.
    """
    midnight = datetime.combine(day or moment.date(), time(), tzinfo=moment.tzinfo)
    exact = (moment - midnight) / timedelta(minutes=1)
    return math.ceil(exact) if round_up else math.floor(exact)


def span(start: str | None, end: str | None) -> timedelta | None:
    """Duration between two "HH:MM" strings. An end before the start wraps past midnight."""
    start_min, end_min = parse_hhmm(start), parse_hhmm(end)
    if start_min is None or end_min is None:
        return None
    if end_min < start_min:
        end_min += MINUTES_PER_DAY
    return timedelta(minutes=end_min - start_min)


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def format_duration(delta: timedelta) -> str:
    if delta < timedelta(seconds=1):
        return "Less than a second"
    total = int(delta.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


def format_countdown(delta: timedelta) -> str:
    if delta <= timedelta(0):
        return "00:00:00"
    total = int(delta.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
