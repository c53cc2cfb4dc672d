"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

from goal_unbox.config import DEFAULT_DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS plans (
    date TEXT PRIMARY KEY,
    goals TEXT NOT NULL DEFAULT '[]',  -- JSON
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS active_goal (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    description TEXT NOT NULL,
    subject TEXT,
    activated_at TEXT NOT NULL,
    time_limit_ms INTEGER,
    planned_goal_id TEXT,
    secret_code TEXT,
    consequence TEXT
);

CREATE TABLE IF NOT EXISTS streak (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    current_streak INTEGER DEFAULT 0,
    last_completion_date TEXT,
    skips_this_week INTEGER DEFAULT 0,
    week_start TEXT,
    accrued_tax_ms INTEGER DEFAULT 0,
    commitment_date TEXT,
    commitment_text TEXT,
    commitment_completed INTEGER DEFAULT 0,
    last_unlocked_code TEXT
);

CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    goal_summary TEXT,
    full_goal TEXT NOT NULL,
    subject TEXT,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    duration_ms INTEGER NOT NULL,
    completion_reason TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_end_time ON history(end_time);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    columns = {row["name"] for row in conn.execute("PRAGMA table_info(active_goal)")}
    if "consequence" not in columns:
        conn.execute("ALTER TABLE active_goal ADD COLUMN consequence TEXT")
    conn.commit()
    conn.close()
