import os
import sys
import sqlite3
import datetime
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from analytics_service import (
    WorkoutAnalyticsService,
    ServiceNotInitializedError,
    build_service,
)
from db import (
    WorkoutRepository,
    CardioRepository,
    AsyncWorkoutRepository,
    AsyncCardioRepository,
    AsyncAnalyticsLogRepository,
)
from settings_schema import AnalyticsSettings

NOW = datetime.datetime(2024, 3, 10, 12, 0)


class BrokenCardioRepository:
    async def fetch_sessions(self, user_id):
        raise sqlite3.OperationalError("cardio table missing")


def _seed_plateau(db_file: str, user_id: str = "u1") -> None:
    repo = WorkoutRepository(db_file)
    for week in range(6):
        day = (NOW - datetime.timedelta(days=7 * (5 - week))).date()
        wid = repo.create(user_id, f"{day.isoformat()}T18:00:00", date=day.isoformat())
        ex = repo.add_exercise(wid, "Bench Press", "Triceps, Chest")
        repo.add_set(ex, 8, 60.0)
        repo.add_set(ex, 0, 0.0)


def _service(db_file: str, **kwargs) -> WorkoutAnalyticsService:
    return WorkoutAnalyticsService(
        AsyncWorkoutRepository(db_file),
        kwargs.get("cardio", AsyncCardioRepository(db_file)),
        AsyncAnalyticsLogRepository(db_file),
        kwargs.get("settings"),
    )


@pytest.mark.asyncio
async def test_queries_require_initialize(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    with pytest.raises(ServiceNotInitializedError):
        service.get_feedback()
    with pytest.raises(RuntimeError):
        service.get_dashboard_analytics()


@pytest.mark.asyncio
async def test_initialize_loads_workouts_and_cardio(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    cardio = CardioRepository(db_file)
    sid = cardio.create("u1", "2024-03-09T07:00:00", "Run", "vigorous", 30)
    cardio.add_exercise(sid, "Running", "Cardio, Legs")
    cardio.create("u1", "2024-03-08T07:00:00", "Bike")

    service = _service(db_file)
    await service.initialize("u1")

    assert service.initialized
    assert len(service.overload_engine.history("Bench Press")) == 6
    assert len(service.stagnation_detector.exercise_logs["Bench Press"]) == 6
    groups = [s["muscle_group"] for s in service.recovery_engine.sessions]
    assert groups.count("chest") == 6
    assert "cardio" in groups
    durations = {s["muscle_group"]: s["duration"] for s in service.recovery_engine.sessions}
    assert durations["chest"] == 45
    assert await service.logs.last_success() is not None


@pytest.mark.asyncio
async def test_initialize_is_idempotent_per_user(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    _seed_plateau(db_file, "u2")
    service = _service(db_file)
    await service.initialize("u1")
    await service.initialize("u1")
    assert len(service.overload_engine.history("Bench Press")) == 6
    await service.initialize("u2")
    assert service.user_id == "u2"
    assert len(service.overload_engine.history("Bench Press")) == 6


@pytest.mark.asyncio
async def test_reloading_history_replaces_recovery_sessions(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    CardioRepository(db_file).create("u1", "2024-03-09T07:00:00", "Run")
    service = _service(db_file)
    await service.initialize("u1")
    assert len(service.recovery_engine.sessions) == 7

    await service.load_workout_history("u1")
    await service.load_cardio_history("u1")
    assert len(service.recovery_engine.sessions) == 7
    assert len(service.overload_engine.history("Bench Press")) == 6
    groups = [s["muscle_group"] for s in service.recovery_engine.sessions]
    assert groups.count("chest") == 6
    assert groups.count("cardio") == 1


@pytest.mark.asyncio
async def test_cardio_failure_does_not_block_workouts(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    service = _service(db_file, cardio=BrokenCardioRepository())
    await service.initialize("u1")
    assert len(service.overload_engine.history("Bench Press")) == 6
    errors = await service.logs.last_errors()
    assert errors[0][1] == "cardio: cardio table missing"
    assert service.get_dashboard_analytics(NOW)["stagnation"]["total"] == 1


@pytest.mark.asyncio
async def test_feedback_for_stagnant_exercise(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    service = _service(db_file)
    await service.initialize("u1")

    feedback = service.get_feedback("Bench Press", NOW)
    assert feedback["user_id"] == "u1"
    assert feedback["stagnant_exercises"][0]["type"] == "complete_stagnation"
    exercise = feedback["exercise"]
    assert exercise["progression"]["type"] == "stagnation"
    assert exercise["stagnation"]["data"]["sessions"] == 6
    assert exercise["plateau_break"] is None
    assert exercise["motivation"]["type"] == "challenge"
    assert exercise["personal_records"]["max_weight"]["value"] == 60
    assert exercise["summary"]["days_tracking"] == 35
    assert "exercise" not in service.get_feedback(now=NOW)


@pytest.mark.asyncio
async def test_dashboard(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    service = _service(db_file)
    await service.initialize("u1")
    dashboard = service.get_dashboard_analytics(NOW)
    assert dashboard["stagnation"]["exercises"][0]["exercise"] == "Bench Press"
    assert 0 <= dashboard["recovery"]["score"] <= 100
    assert dashboard["weekly_advice"]["status"] in (
        "critical", "warning", "caution", "good", "excellent"
    )
    assert "recommended" in dashboard["should_rest"]


@pytest.mark.asyncio
async def test_stagnation_alerts_are_throttled(tmp_path):
    db_file = str(tmp_path / "workout.db")
    _seed_plateau(db_file)
    service = _service(db_file, settings=AnalyticsSettings(notify_interval_days=3))
    await service.initialize("u1")
    assert len(service.stagnation_alerts(NOW)) == 1
    assert service.stagnation_alerts(NOW + datetime.timedelta(days=1)) == []
    assert len(service.stagnation_alerts(NOW + datetime.timedelta(days=3))) == 1


def _daily_legs(service: WorkoutAnalyticsService, days: int) -> None:
    for n in range(days):
        service.log_workout(
            {
                "exercises": [],
                "intensity": "vigorous",
                "duration": 60,
                "date": (NOW - datetime.timedelta(days=n)).replace(hour=8),
                "muscle_groups": ["legs"],
            }
        )


def test_post_workout_keeps_matching_overtraining(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    _daily_legs(service, 7)
    summary = service.get_post_workout_summary(
        {
            "exercises": [{"name": "Squat", "sets": [{"weight": 100, "reps": 5}]}],
            "intensity": "vigorous",
            "duration": 60,
            "muscle_groups": ["Legs"],
        },
        NOW,
    )
    assert summary["workout"]["exercises"] == 1
    assert [a["type"] for a in summary["achievements"]] == ["first"]
    assert {w["type"] for w in summary["warnings"]} == {
        "overtraining",
        "no_rest",
        "high_intensity",
    }


def test_post_workout_drops_unrelated_overtraining(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    _daily_legs(service, 7)
    summary = service.get_post_workout_summary(
        {"exercises": [], "muscle_groups": ["Chest"]}, NOW
    )
    assert "overtraining" not in {w["type"] for w in summary["warnings"]}
    assert "no_rest" in {w["type"] for w in summary["warnings"]}


def test_post_workout_new_user_sees_only_critical(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    _daily_legs(service, 1)
    summary = service.get_post_workout_summary(
        {"exercises": [], "muscle_groups": ["legs"]}, NOW
    )
    assert summary["warnings"] == []


def test_post_workout_suggestions_and_plateau_break(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    bench = {"name": "Bench", "sets": [{"weight": 60, "reps": 8}]}
    for week in range(6):
        service.log_workout(
            {
                "exercises": [bench],
                "date": NOW - datetime.timedelta(days=7 * (6 - week)),
                "muscle_groups": ["chest"],
            }
        )
    summary = service.get_post_workout_summary({"exercises": [bench]}, NOW)
    assert summary["achievements"] == []
    assert summary["suggestions"][0]["exercise"] == "Bench"
    assert summary["suggestions"][0]["type"] == "stagnation"

    heavier = {"name": "Bench", "sets": [{"weight": "65", "reps": "8"}]}
    service.log_workout({"exercises": [heavier], "date": NOW, "muscle_groups": ["chest"]})
    summary = service.get_post_workout_summary({"exercises": [heavier]}, NOW)
    assert [a["type"] for a in summary["achievements"]] == ["plateau_broken"]
    assert summary["suggestions"] == []


def test_reset_clears_state(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    _daily_legs(service, 2)
    service.reset()
    assert service.recovery_engine.sessions == []
    assert not service.initialized
    assert service.user_id is None


def test_build_service(tmp_path):
    service = build_service(str(tmp_path / "workout.db"))
    assert isinstance(service.workouts, AsyncWorkoutRepository)
    assert isinstance(service.logs, AsyncAnalyticsLogRepository)
    assert service.stagnation_detector.threshold == 6


def test_records_taken_before_logging_are_kept(tmp_path):
    service = _service(str(tmp_path / "workout.db"))
    bench = {"name": "Bench", "sets": [{"weight": 60, "reps": 8}]}
    service.log_workout({"exercises": [bench], "date": NOW - datetime.timedelta(days=2)})
    heavier = {"exercises": [{"name": "Bench", "sets": [{"weight": 62.5, "reps": 8}]}], "date": NOW}

    records = service.check_workout_records(heavier)
    service.log_workout(heavier)
    summary = service.get_post_workout_summary(heavier, NOW, records=records)
    assert [a["type"] for a in summary["achievements"]] == ["weight", "volume"]
    assert service.get_post_workout_summary(heavier, NOW)["achievements"] == []
