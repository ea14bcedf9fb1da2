import argparse
import asyncio
import datetime
import json
import logging

from algorithms import MathTools
from analytics_service import build_service
from db import (
    WorkoutRepository,
    AsyncStreakRepository,
    AsyncWorkoutRepository,
    AsyncCardioRepository,
    AsyncFoodLogRepository,
)
from seed_sample_data import seed
from settings_schema import AnalyticsSettings, load_settings
from streak_service import StreakService


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _streak_service(settings: AnalyticsSettings) -> StreakService:
    db_path = settings.db_path
    return StreakService(
        AsyncStreakRepository(db_path),
        AsyncWorkoutRepository(db_path),
        AsyncCardioRepository(db_path),
        AsyncFoodLogRepository(db_path),
        settings,
    )


async def feedback(settings: AnalyticsSettings, exercise: str | None) -> dict:
    service = build_service(settings.db_path, settings)
    await service.initialize(settings.user_id)
    return service.get_feedback(exercise)


async def dashboard(settings: AnalyticsSettings) -> dict:
    service = build_service(settings.db_path, settings)
    await service.initialize(settings.user_id)
    return service.get_dashboard_analytics()


def _store_workout(
    db_path: str, user_id: str, workout: dict, default_intensity: str = "moderate"
) -> int:
    """Persist ``workout`` and return the new workout id."""
    repo = WorkoutRepository(db_path)
    date = MathTools.to_datetime(workout["date"])
    groups = ", ".join(workout.get("muscle_groups") or []) or None
    workout_id = repo.create(
        user_id,
        date.isoformat(),
        workout.get("intensity") or default_intensity,
        workout.get("duration"),
        date.date().isoformat(),
    )
    for exercise in workout.get("exercises") or []:
        ex_id = repo.add_exercise(
            workout_id, exercise["name"], exercise.get("body_parts") or groups
        )
        for s in exercise.get("sets") or []:
            repo.add_set(ex_id, s.get("reps"), s.get("weight"))
    return workout_id


async def summary(settings: AnalyticsSettings, workout_path: str) -> dict:
    """Store the workout in ``workout_path`` and return its post-workout summary."""
    with open(workout_path, "r", encoding="utf-8") as f:
        workout = json.load(f)
    workout.setdefault("date", datetime.datetime.now().isoformat())
    service = build_service(settings.db_path, settings)
    await service.initialize(settings.user_id)
    records = service.check_workout_records(workout)
    _store_workout(
        settings.db_path, settings.user_id, workout, settings.default_intensity
    )
    service.log_workout(workout)
    return service.get_post_workout_summary(workout, records=records)


async def streak(settings: AnalyticsSettings) -> dict:
    return await _streak_service(settings).current_streaks(settings.user_id)


async def rebuild_streaks(settings: AnalyticsSettings) -> dict:
    service = _streak_service(settings)
    workout = await service.rebuild_workout_streak(settings.user_id)
    calorie = await service.rebuild_calorie_streak(settings.user_id)
    return {"workout": workout.to_json(), "calorie": calorie.to_json()}


def main() -> None:
    parser = argparse.ArgumentParser(description="Workout analytics commands")
    parser.add_argument("--settings", default="settings.yaml")
    parser.add_argument("--db", default=None)
    parser.add_argument("--user", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    fb = sub.add_parser("feedback")
    fb.add_argument("--exercise", default=None)

    sub.add_parser("dashboard")

    summ = sub.add_parser("summary")
    summ.add_argument("--workout", required=True, help="JSON file with the workout")

    sub.add_parser("streak")
    sub.add_parser("rebuild-streaks")
    sub.add_parser("demo")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    settings = load_settings(args.settings)
    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.user:
        overrides["user_id"] = args.user
    if overrides:
        settings = settings.model_copy(update=overrides)

    if args.cmd == "feedback":
        _print(asyncio.run(feedback(settings, args.exercise)))
    elif args.cmd == "dashboard":
        _print(asyncio.run(dashboard(settings)))
    elif args.cmd == "summary":
        _print(asyncio.run(summary(settings, args.workout)))
    elif args.cmd == "streak":
        _print(asyncio.run(streak(settings)))
    elif args.cmd == "rebuild-streaks":
        _print(asyncio.run(rebuild_streaks(settings)))
    elif args.cmd == "demo":
        seed(settings.db_path, settings.user_id, datetime.date.today())
        _print(asyncio.run(dashboard(settings)))


if __name__ == "__main__":
    main()
