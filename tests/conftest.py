from datetime import datetime

import pytest

from goal_unbox.clock import ManualClock


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_goals.db")
    return db_path


@pytest.fixture
def clock():
    """A clock standing still at 09:00 on Wednesday 2024-05-15 until a test moves it."""
    return ManualClock(datetime(2024, 5, 15, 9, 0))
