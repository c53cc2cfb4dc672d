from datetime import date, timedelta

from goal_unbox.db import init_db
from goal_unbox.importer import import_goals, parse_goal_entries, read_file_content
from goal_unbox.models import DailyPlan, PlannedGoal
from goal_unbox.store import SqliteStore

DAY = date(2024, 5, 15)


def test_read_yaml_file(tmp_path):
    f = tmp_path / "goals.yaml"
    f.write_text("goals:\n  - {description: Read, start: '09:00', end: '10:00'}\n")
    assert read_file_content(str(f)) == {"goals": [{"description": "Read", "start": "09:00", "end": "10:00"}]}


def test_parse_json_list(tmp_path):
    f = tmp_path / "goals.json"
    f.write_text('[{"description": "Write report", "subject": "Work", "estimated_minutes": 45}]')
    entries = parse_goal_entries(str(f))
    assert entries == [{
        "description": "Write report", "subject": "Work", "scheduled_start": None,
        "scheduled_end": None, "estimated_duration": timedelta(minutes=45),
    }]


def test_parse_text_lines(tmp_path):
    f = tmp_path / "goals.txt"
    f.write_text(
        "# today\n"
        "09:00-10:30 Algèbre: exercises 1 to 12\n"
        "- Chimie: read chapter 4\n"
        "\n"
        "Call the bank\n"
    )
    entries = parse_goal_entries(str(f))
    assert len(entries) == 3
    assert entries[0]["scheduled_start"] == "09:00"
    assert entries[0]["scheduled_end"] == "10:30"
    assert entries[0]["subject"] == "Algèbre"
    assert entries[0]["description"] == "exercises 1 to 12"
    assert entries[1]["subject"] == "Chimie"
    assert entries[1]["scheduled_start"] is None
    assert entries[2] == {
        "description": "Call the bank", "subject": "", "scheduled_start": None,
        "scheduled_end": None, "estimated_duration": None,
    }


def test_import_goals_skips_overlaps(tmp_path, tmp_db):
    init_db(tmp_db)
    store = SqliteStore(tmp_db)
    store.save_plan(DailyPlan(date=DAY, goals=(
        PlannedGoal(id="x", description="Existing", scheduled_start="09:00", scheduled_end="10:00"),
    )))
    f = tmp_path / "goals.txt"
    f.write_text("09:30-10:30 Clash: overlaps\n10:00-11:00 Fits: after\n")
    result = import_goals(store, DAY, str(f))
    assert result["imported"] == 1
    assert result["rejected"] == ["overlaps"]
    plan = store.load_plan(DAY)
    assert {g.subject for g in plan.goals} == {"", "Fits"}


def test_import_goals_creates_missing_plan(tmp_path, tmp_db):
    init_db(tmp_db)
    store = SqliteStore(tmp_db)
    f = tmp_path / "goals.yml"
    f.write_text("- {description: Run, start: '06:00', end: '07:00'}\n")
    import_goals(store, DAY, str(f))
    assert [g.description for g in store.load_plan(DAY).goals] == ["Run"]


def test_import_unquoted_yaml_times(tmp_path, tmp_db):
    init_db(tmp_db)
    store = SqliteStore(tmp_db)
    f = tmp_path / "goals.yaml"
    f.write_text("- {description: Read, start: 10:30, end: 11:30}\n- {description: Run, start: 7:00, end: 7:45}\n")
    result = import_goals(store, DAY, str(f))
    assert result["imported"] == 2
    times = {g.description: (g.scheduled_start, g.scheduled_end) for g in store.load_plan(DAY).goals}
    assert times == {"Read": ("10:30", "11:30"), "Run": ("07:00", "07:45")}


def test_import_rejects_numeric_times_without_aborting(tmp_path, tmp_db):
    init_db(tmp_db)
    store = SqliteStore(tmp_db)
    f = tmp_path / "goals.json"
    f.write_text('[{"description": "Odd", "start": 9.5, "end": 10.5}, {"description": "Fine", "start": "11:00", "end": "12:00"}]')
    result = import_goals(store, DAY, str(f))
    assert result["imported"] == 1
    assert result["rejected"] == ["Odd"]
    assert [g.description for g in store.load_plan(DAY).goals] == ["Fine"]
