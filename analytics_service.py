import asyncio
import datetime
import logging

from algorithms import (
    ProgressiveOverloadEngine,
    RestRecoveryEngine,
    StagnationDetector,
    NotificationThrottle,
)
from db import (
    AsyncWorkoutRepository,
    AsyncCardioRepository,
    AsyncAnalyticsLogRepository,
)
from ingestion_schema import (
    InvalidRowError,
    normalize_set_row,
    normalize_recovery_row,
)
from settings_schema import AnalyticsSettings

logger = logging.getLogger(__name__)

WARNING_SEVERITIES = ("critical", "high", "medium")


class ServiceNotInitializedError(RuntimeError):
    """Raised when a query runs before ``initialize`` has completed."""

    def __init__(self) -> None:
        super().__init__("Service not initialized. Call initialize() first.")


def _muscle_groups(body_parts: str | None) -> set[str]:
    if not body_parts:
        return set()
    return {p.strip().lower() for p in body_parts.split(",") if p.strip()}


def _primary_group(groups: set[str], fallback: str) -> str:
    return sorted(groups)[0] if groups else fallback


class WorkoutAnalyticsService:
    """Feed stored workouts into the analytics engines and query them."""

    def __init__(
        self,
        workout_repo: AsyncWorkoutRepository,
        cardio_repo: AsyncCardioRepository,
        log_repo: AsyncAnalyticsLogRepository | None = None,
        settings: AnalyticsSettings | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.cardio = cardio_repo
        self.logs = log_repo
        self.settings = settings or AnalyticsSettings()
        self.reset()

    def reset(self) -> None:
        """Drop all loaded history and forget the current user."""
        self.overload_engine = ProgressiveOverloadEngine()
        self.recovery_engine = RestRecoveryEngine()
        self.stagnation_detector = StagnationDetector(
            threshold=self.settings.stagnation_threshold,
            throttle=NotificationThrottle(self.settings.notify_interval_days),
        )
        # recovery rows per source, merged into the engine on every load
        self._recovery_rows: dict[str, list[dict]] = {"workout": [], "cardio": []}
        self.initialized = False
        self.user_id: str | None = None

    async def initialize(self, user_id: str) -> None:
        if self.initialized and self.user_id == user_id:
            return
        self.reset()
        self.user_id = user_id
        await asyncio.gather(
            self.load_workout_history(user_id),
            self.load_cardio_history(user_id),
        )
        self.initialized = True
        logger.info("analytics initialized for user %s", user_id)

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise ServiceNotInitializedError()

    async def _record_failure(self, source: str, exc: Exception) -> None:
        logger.exception("failed to load %s history", source)
        if self.logs is not None:
            await self.logs.log_error(f"{source}: {exc}")

    async def _record_success(self, message: str) -> None:
        logger.info(message)
        if self.logs is not None:
            await self.logs.log_success(message)

    def _apply_recovery_rows(self, source: str, rows: list[dict]) -> None:
        self._recovery_rows[source] = rows
        self.recovery_engine.load_sessions(
            self._recovery_rows["workout"] + self._recovery_rows["cardio"]
        )

    async def load_workout_history(self, user_id: str) -> int:
        """Ingest stored strength workouts and return how many were loaded."""
        try:
            workouts = await self.workouts.fetch_workouts(user_id)
        except Exception as e:
            await self._record_failure("workout", e)
            return 0

        set_rows: list[dict] = []
        recovery_rows: list[dict] = []
        skipped = 0
        for workout in workouts:
            groups: set[str] = set()
            for exercise in workout["exercises"]:
                groups |= _muscle_groups(exercise.get("body_parts"))
                for s in exercise["sets"]:
                    if not s.get("weight") or not s.get("reps"):
                        continue
                    try:
                        set_rows.append(
                            normalize_set_row(
                                {
                                    "name": exercise["name"],
                                    "weight": s["weight"],
                                    "reps": s["reps"],
                                    "sets": 1,
                                    "date": workout.get("date"),
                                    "created_at": workout.get("created_at"),
                                }
                            )
                        )
                    except InvalidRowError as e:
                        skipped += 1
                        logger.warning("skipping set: %s", e)
            try:
                session = normalize_recovery_row(
                    {
                        "muscle_group": _primary_group(groups, "full body"),
                        "date": workout.get("date"),
                        "created_at": workout.get("created_at"),
                        "intensity": workout.get("intensity")
                        or self.settings.default_intensity,
                        "duration": workout.get("duration")
                        or self.settings.default_duration,
                    }
                )
            except InvalidRowError as e:
                skipped += 1
                logger.warning("skipping workout: %s", e)
                continue
            recovery_rows.append(session)

        self.overload_engine.load_history(set_rows)
        self.stagnation_detector.load_logs(set_rows)
        self._apply_recovery_rows("workout", recovery_rows)
        await self._record_success(
            f"loaded {len(workouts)} workouts ({len(set_rows)} sets, {skipped} skipped)"
        )
        return len(workouts)

    async def load_cardio_history(self, user_id: str) -> int:
        """Ingest stored cardio sessions as recovery sessions."""
        try:
            sessions = await self.cardio.fetch_sessions(user_id)
        except Exception as e:
            await self._record_failure("cardio", e)
            return 0

        recovery_rows: list[dict] = []
        for cardio in sessions:
            groups: set[str] = set()
            for exercise in cardio["exercises"]:
                groups |= _muscle_groups(exercise.get("body_parts"))
            try:
                session = normalize_recovery_row(
                    {
                        "muscle_group": _primary_group(groups, "cardio"),
                        "created_at": cardio.get("created_at"),
                        "intensity": cardio.get("intensity")
                        or self.settings.default_intensity,
                        "estimated_time": cardio.get("estimated_time")
                        or self.settings.default_duration,
                    }
                )
            except InvalidRowError as e:
                logger.warning("skipping cardio session: %s", e)
                continue
            recovery_rows.append(session)
        self._apply_recovery_rows("cardio", recovery_rows)
        await self._record_success(f"loaded {len(recovery_rows)} cardio sessions")
        return len(recovery_rows)

    def log_workout(self, workout: dict) -> None:
        """Feed a freshly completed workout into all three engines."""
        date = workout.get("date") or datetime.datetime.now()
        for exercise in workout.get("exercises") or []:
            for s in exercise.get("sets") or []:
                if not s.get("weight") or not s.get("reps"):
                    continue
                weight = float(s["weight"])
                reps = int(s["reps"])
                self.overload_engine.log_session(exercise["name"], weight, reps, 1, date)
                self.stagnation_detector.log_exercise(exercise["name"], weight, reps, 1, date)

        groups = workout.get("muscle_groups") or []
        self.recovery_engine.log_session(
            groups[0] if groups else "full body",
            date,
            workout.get("intensity") or self.settings.default_intensity,
            workout.get("duration") or self.settings.default_duration,
        )

    def get_feedback(
        self,
        exercise_name: str | None = None,
        now: datetime.datetime | None = None,
    ) -> dict:
        self._require_initialized()
        now = now or datetime.datetime.now()
        feedback = {
            "timestamp": now,
            "user_id": self.user_id,
            "recovery": self.recovery_engine.get_rest_advice(now),
            "recovery_score": self.recovery_engine.get_recovery_score(now),
            "should_rest": self.recovery_engine.should_rest_today(now),
            "stagnant_exercises": self.stagnation_detector.get_all_stagnant_exercises(),
        }
        if exercise_name:
            feedback["exercise"] = {
                "name": exercise_name,
                "progression": self.overload_engine.suggest_increase(exercise_name),
                "stagnation": self.stagnation_detector.check_stagnation(exercise_name),
                "plateau_break": self.stagnation_detector.check_plateau_break(exercise_name),
                "motivation": self.stagnation_detector.get_motivation_message(exercise_name),
                "streak": self.stagnation_detector.get_progress_streak(exercise_name),
                "personal_records": self.overload_engine.get_personal_records(exercise_name),
                "summary": self.overload_engine.get_progress_summary(exercise_name),
            }
        return feedback

    @staticmethod
    def _relevant_warning(
        warning: dict, total_sessions: int, workout_groups: list[str]
    ) -> bool:
        if total_sessions < 3 and warning["severity"] != "critical":
            return False
        kind = warning["type"]
        if kind in ("no_rest", "insufficient_rest"):
            return total_sessions >= 2
        if kind in ("high_volume", "high_intensity"):
            return total_sessions >= 5
        if kind == "overtraining":
            warned = warning.get("data", {}).get("muscle_group", "").lower()
            if not warned:
                return False
            return any(g in warned or warned in g for g in workout_groups)
        return False

    def check_workout_records(self, workout: dict) -> list[dict]:
        """Return PR announcements for every set in ``workout``.

        Call this before ``log_workout`` so the sets are compared against
        the history that existed before the workout.
        """
        records: list[dict] = []
        for exercise in workout.get("exercises") or []:
            for s in exercise.get("sets") or []:
                if not s.get("weight") or not s.get("reps"):
                    continue
                pr = self.overload_engine.check_for_pr(
                    exercise["name"],
                    {"weight": float(s["weight"]), "reps": int(s["reps"]), "sets": 1},
                )
                if isinstance(pr, list):
                    records.extend(pr)
                elif pr is not None:
                    records.append(pr)
        return records

    def get_post_workout_summary(
        self,
        workout: dict,
        now: datetime.datetime | None = None,
        records: list[dict] | None = None,
    ) -> dict:
        """Summarise achievements, relevant warnings and suggestions.

        ``records`` are PRs already taken with ``check_workout_records``;
        when omitted they are checked against the current history.
        """
        exercises = workout.get("exercises") or []
        muscle_groups = workout.get("muscle_groups") or []
        summary = {
            "workout": {
                "exercises": len(exercises),
                "intensity": workout.get("intensity"),
                "duration": workout.get("duration"),
                "muscle_groups": muscle_groups,
            },
            "achievements": [],
            "warnings": [],
            "suggestions": [],
        }

        if records is None:
            records = self.check_workout_records(workout)
        summary["achievements"].extend(records)
        for exercise in exercises:
            if not exercise.get("sets"):
                continue
            plateau_break = self.stagnation_detector.check_plateau_break(exercise["name"])
            if plateau_break:
                summary["achievements"].append(plateau_break)

        advice = self.recovery_engine.get_rest_advice(now)
        total_sessions = advice["metrics"]["total_sessions"]
        groups = [g.lower() for g in muscle_groups]
        summary["warnings"] = [
            item
            for item in advice["advice"]
            if item.get("severity") in WARNING_SEVERITIES
            and self._relevant_warning(item, total_sessions, groups)
        ]

        for exercise in exercises:
            progression = self.overload_engine.suggest_increase(exercise["name"])
            if progression["type"] in ("stagnation", "consistency"):
                summary["suggestions"].append({"exercise": exercise["name"], **progression})
        return summary

    def get_dashboard_analytics(self, now: datetime.datetime | None = None) -> dict:
        self._require_initialized()
        now = now or datetime.datetime.now()
        stagnant = self.stagnation_detector.get_all_stagnant_exercises()
        return {
            "recovery": self.recovery_engine.get_recovery_score(now),
            "stagnation": {"total": len(stagnant), "exercises": stagnant},
            "weekly_advice": self.recovery_engine.get_rest_advice(now),
            "should_rest": self.recovery_engine.should_rest_today(now),
        }

    def stagnation_alerts(self, now: datetime.datetime | None = None) -> list[dict]:
        """Return stagnant exercises whose reminder is due, marking them notified."""
        self._require_initialized()
        return [
            item
            for item in self.stagnation_detector.get_all_stagnant_exercises()
            if self.stagnation_detector.should_notify(item["exercise"], now)
        ]


def build_service(
    db_path: str = "workout.db", settings: AnalyticsSettings | None = None
) -> WorkoutAnalyticsService:
    """Construct a service wired to sqlite repositories at ``db_path``."""
    return WorkoutAnalyticsService(
        AsyncWorkoutRepository(db_path),
        AsyncCardioRepository(db_path),
        AsyncAnalyticsLogRepository(db_path),
        settings,
    )
