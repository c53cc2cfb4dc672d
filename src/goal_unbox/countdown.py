"""Deadline countdowns evaluated on every clock tick."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from loguru import logger


class CountdownKind(str, Enum):
    NEXT_GOAL_SELECTION = "next_goal_selection"
    BREAK_REMAINING = "break_remaining"
    GOAL_DEADLINE = "goal_deadline"


@dataclass(frozen=True)
class Countdown:
    kind: CountdownKind
    deadline: datetime

    def remaining(self, now: datetime) -> timedelta:
        return max(timedelta(0), self.deadline - now)

    def expired(self, now: datetime) -> bool:
        return now >= self.deadline


class CountdownController:
    """Holds at most one armed countdown per kind.

    A countdown fires once: ``pop_expired`` returns it and disarms it.
    """

    def __init__(self):
        self._armed: dict[CountdownKind, Countdown] = {}

    def arm(self, kind: CountdownKind, now: datetime, duration: timedelta) -> Countdown:
        return self.arm_until(kind, now + duration)

    def arm_until(self, kind: CountdownKind, deadline: datetime) -> Countdown:
        countdown = Countdown(kind, deadline)
        self._armed[kind] = countdown
        logger.debug(f"Armed {kind.value} until {deadline.isoformat(timespec='seconds')}")
        return countdown

    def cancel(self, kind: CountdownKind) -> None:
        if self._armed.pop(kind, None) is not None:
            logger.debug(f"Cancelled {kind.value}")

    def cancel_all(self) -> None:
        for kind in list(self._armed):
            self.cancel(kind)

    def is_armed(self, kind: CountdownKind) -> bool:
        return kind in self._armed

    def get(self, kind: CountdownKind) -> Countdown | None:
        return self._armed.get(kind)

    def remaining(self, kind: CountdownKind, now: datetime) -> timedelta | None:
        countdown = self._armed.get(kind)
        return countdown.remaining(now) if countdown else None

    def pop_expired(self, now: datetime) -> list[CountdownKind]:
        expired = [kind for kind, c in self._armed.items() if c.expired(now)]
        for kind in expired:
            del self._armed[kind]
        return expired

    def remainders(self, now: datetime) -> dict[CountdownKind, timedelta]:
        return {kind: c.remaining(now) for kind, c in self._armed.items()}
