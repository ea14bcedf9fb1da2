import os
import sys
import json
import asyncio
import datetime

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from db import WorkoutRepository, AsyncWorkoutRepository
from seed_sample_data import seed


def _run(monkeypatch, capsys, tmp_path, *args):
    argv = [
        "cli.py",
        "--settings",
        str(tmp_path / "missing.yaml"),
        "--db",
        str(tmp_path / "workout.db"),
        "--user",
        "demo",
        *args,
    ]
    monkeypatch.setattr(sys, "argv", argv)
    cli.main()
    out = capsys.readouterr().out
    return out


def test_demo_prints_dashboard(monkeypatch, capsys, tmp_path):
    out = _run(monkeypatch, capsys, tmp_path, "demo")
    assert out.startswith("Seed data inserted")
    data = json.loads(out.split("\n", 1)[1])
    assert data["stagnation"]["total"] >= 1
    assert data["stagnation"]["exercises"][0]["exercise"] == "Bench Press"
    assert 0 <= data["recovery"]["score"] <= 100


def test_seed_only_once(tmp_path):
    db_file = str(tmp_path / "workout.db")
    assert seed(db_file, "demo")
    assert not seed(db_file, "demo")


def test_feedback_for_exercise(monkeypatch, capsys, tmp_path):
    seed(str(tmp_path / "workout.db"), "demo")
    capsys.readouterr()
    data = json.loads(_run(monkeypatch, capsys, tmp_path, "feedback", "--exercise", "Bench Press"))
    assert data["user_id"] == "demo"
    assert data["exercise"]["personal_records"]["max_weight"]["value"] == 70.0


def test_summary_from_file(monkeypatch, capsys, tmp_path):
    workout = {
        "exercises": [{"name": "Deadlift", "sets": [{"weight": 120, "reps": 5}]}],
        "intensity": "vigorous",
        "duration": 50,
        "muscle_groups": ["back"],
    }
    path = tmp_path / "workout.json"
    path.write_text(json.dumps(workout), encoding="utf-8")
    data = json.loads(_run(monkeypatch, capsys, tmp_path, "summary", "--workout", str(path)))
    assert data["achievements"][0]["type"] == "first"


def test_streak_commands(monkeypatch, capsys, tmp_path):
    seed(str(tmp_path / "workout.db"), "demo")
    capsys.readouterr()
    rebuilt = json.loads(_run(monkeypatch, capsys, tmp_path, "rebuild-streaks"))
    assert rebuilt["workout"]["maxStreak"] >= 1
    assert rebuilt["calorie"]["maxStreak"] >= 1
    current = json.loads(_run(monkeypatch, capsys, tmp_path, "streak"))
    assert set(current) == {"workout", "calorie"}


def test_summary_stores_workout_and_reports_plateau_break(monkeypatch, capsys, tmp_path):
    db_file = str(tmp_path / "workout.db")
    repo = WorkoutRepository(db_file)
    today = datetime.date.today()
    for week in range(6, 0, -1):
        day = (today - datetime.timedelta(days=7 * week)).isoformat()
        wid = repo.create("demo", f"{day}T18:00:00", date=day)
        repo.add_set(repo.add_exercise(wid, "Bench Press", "Chest"), 8, 60.0)

    workout = {
        "exercises": [{"name": "Bench Press", "sets": [{"weight": 65, "reps": 8}]}],
        "muscle_groups": ["chest"],
    }
    path = tmp_path / "workout.json"
    path.write_text(json.dumps(workout), encoding="utf-8")
    data = json.loads(_run(monkeypatch, capsys, tmp_path, "summary", "--workout", str(path)))

    kinds = [a["type"] for a in data["achievements"]]
    assert kinds == ["weight", "volume", "plateau_broken"]
    assert data["suggestions"] == []

    stored = asyncio.run(AsyncWorkoutRepository(db_file).fetch_workouts("demo"))
    assert len(stored) == 7
    latest = max(stored, key=lambda w: w["created_at"])
    assert latest["exercises"][0]["sets"] == [{"reps": 8, "weight": 65.0}]
    assert latest["exercises"][0]["body_parts"] == "chest"
