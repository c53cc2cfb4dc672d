"""SQLite-backed persistence for plans, the active goal, streak data and history."""
import json
from dataclasses import replace
from datetime import date, datetime, timedelta

from goal_unbox.db import get_connection
from goal_unbox.models import (
    ActiveGoalState, CompletedGoalRecord, CompletionReason, DailyCommitment, DailyPlan,
    GoalStatus, PlannedGoal, StreakData,
)


def _ms(delta: timedelta | None) -> int | None:
    return None if delta is None else round(delta / timedelta(milliseconds=1))


def _delta(ms: int | None) -> timedelta | None:
    return None if ms is None else timedelta(milliseconds=ms)


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def goal_to_dict(goal: PlannedGoal) -> dict:
    return {
        "id": goal.id,
        "description": goal.description,
        "subject": goal.subject,
        "scheduled_start": goal.scheduled_start,
        "scheduled_end": goal.scheduled_end,
        "estimated_duration_ms": _ms(goal.estimated_duration),
        "status": goal.status.value,
    }


def goal_from_dict(data: dict) -> PlannedGoal:
    return PlannedGoal(
        id=str(data["id"]),
        description=data.get("description", ""),
        subject=data.get("subject", ""),
        scheduled_start=data.get("scheduled_start"),
        scheduled_end=data.get("scheduled_end"),
        estimated_duration=_delta(data.get("estimated_duration_ms")),
        status=GoalStatus(data.get("status", "pending")),
    )


def record_from_row(row) -> CompletedGoalRecord:
    return CompletedGoalRecord(
        id=row["id"],
        goal_summary=row["goal_summary"],
        full_goal=row["full_goal"],
        subject=row["subject"] or "",
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]),
        duration=timedelta(milliseconds=row["duration_ms"]),
        completion_reason=CompletionReason(row["completion_reason"]),
    )


class SqliteStore:
    """Implements the persistence port on top of the tables in ``db.SCHEMA``."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    # -- plans --

    def load_plan(self, day: date) -> DailyPlan | None:
        conn = get_connection(self.db_path)
        row = conn.execute("SELECT goals FROM plans WHERE date = ?", (day.isoformat(),)).fetchone()
        conn.close()
        if not row:
            return None
        return DailyPlan(date=day, goals=tuple(goal_from_dict(g) for g in json.loads(row["goals"])))

    def save_plan(self, plan: DailyPlan) -> None:
        goals = json.dumps([goal_to_dict(g) for g in plan.goals], ensure_ascii=False)
        conn = get_connection(self.db_path)
        conn.execute(
            "INSERT INTO plans (date, goals, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(date) DO UPDATE SET goals=excluded.goals, updated_at=excluded.updated_at",
            (plan.date.isoformat(), goals, datetime.now().isoformat()),
        )
        conn.commit()
        conn.close()

    # -- active goal --

    def load_active_goal(self) -> ActiveGoalState | None:
        conn = get_connection(self.db_path)
        row = conn.execute("SELECT * FROM active_goal WHERE id = 1").fetchone()
        conn.close()
        if not row:
            return None
        return ActiveGoalState(
            description=row["description"],
            subject=row["subject"] or "",
            activated_at=datetime.fromisoformat(row["activated_at"]),
            time_limit=_delta(row["time_limit_ms"]),
            planned_goal_id=row["planned_goal_id"],
            secret_code=row["secret_code"],
            consequence=row["consequence"],
        )

    def save_active_goal(self, state: ActiveGoalState) -> None:
        conn = get_connection(self.db_path)
        conn.execute(
            """INSERT OR REPLACE INTO active_goal
            (id, description, subject, activated_at, time_limit_ms, planned_goal_id, secret_code, consequence)
            VALUES (1, ?, ?, ?, ?, ?, ?, ?)""",
            (
                state.description, state.subject, state.activated_at.isoformat(),
                _ms(state.time_limit), state.planned_goal_id, state.secret_code, state.consequence,
            ),
        )
        conn.commit()
        conn.close()

    def clear_active_goal(self) -> None:
        conn = get_connection(self.db_path)
        conn.execute("DELETE FROM active_goal")
        conn.commit()
        conn.close()

    # -- streak --

    def load_streak(self) -> StreakData | None:
        conn = get_connection(self.db_path)
        row = conn.execute("SELECT * FROM streak WHERE id = 1").fetchone()
        conn.close()
        if not row:
            return None
        commitment = None
        if row["commitment_date"]:
            commitment = DailyCommitment(
                date=date.fromisoformat(row["commitment_date"]),
                text=row["commitment_text"] or "",
                completed=bool(row["commitment_completed"]),
            )
        return StreakData(
            current_streak=row["current_streak"],
            last_completion_date=_date(row["last_completion_date"]),
            skips_this_week=row["skips_this_week"],
            week_start=_date(row["week_start"]),
            accrued_tax=timedelta(milliseconds=row["accrued_tax_ms"] or 0),
            commitment=commitment,
            last_unlocked_code=row["last_unlocked_code"],
        )

    def save_streak(self, streak: StreakData) -> None:
        commitment = streak.commitment
        conn = get_connection(self.db_path)
        conn.execute(
            """INSERT OR REPLACE INTO streak
            (id, current_streak, last_completion_date, skips_this_week, week_start, accrued_tax_ms,
             commitment_date, commitment_text, commitment_completed, last_unlocked_code)
            VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                streak.current_streak,
                streak.last_completion_date.isoformat() if streak.last_completion_date else None,
                streak.skips_this_week,
                streak.week_start.isoformat() if streak.week_start else None,
                _ms(streak.accrued_tax),
                commitment.date.isoformat() if commitment else None,
                commitment.text if commitment else None,
                int(commitment.completed) if commitment else 0,
                streak.last_unlocked_code,
            ),
        )
        conn.commit()
        conn.close()

    # -- history --

    def append_history(self, record: CompletedGoalRecord) -> CompletedGoalRecord:
        conn = get_connection(self.db_path)
        cursor = conn.execute(
            """INSERT INTO history
            (goal_summary, full_goal, subject, start_time, end_time, duration_ms, completion_reason)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                record.goal_summary, record.full_goal, record.subject,
                record.start_time.isoformat(), record.end_time.isoformat(),
                _ms(record.duration), record.completion_reason.value,
            ),
        )
        record_id = cursor.lastrowid
        conn.commit()
        conn.close()
        return replace(record, id=record_id)

    def list_history(self, since: datetime | None = None) -> list[CompletedGoalRecord]:
        conn = get_connection(self.db_path)
        if since is None:
            rows = conn.execute("SELECT * FROM history ORDER BY end_time DESC").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM history WHERE end_time >= ? ORDER BY end_time DESC", (since.isoformat(),)
            ).fetchall()
        conn.close()
        return [record_from_row(r) for r in rows]

    def delete_history(self, record_id: int) -> bool:
        conn = get_connection(self.db_path)
        cursor = conn.execute("DELETE FROM history WHERE id = ?", (record_id,))
        conn.commit()
        conn.close()
        return cursor.rowcount > 0

    # -- settings --

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        conn = get_connection(self.db_path)
        row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
        conn.close()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        conn.execute(
            "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
            (key, value, value),
        )
        conn.commit()
        conn.close()
