import datetime
import json
import logging

from db import (
    AsyncStreakRepository,
    AsyncWorkoutRepository,
    AsyncCardioRepository,
    AsyncFoodLogRepository,
)
from algorithms import MathTools
from settings_schema import AnalyticsSettings
from streak_trackers import WorkoutStreakTracker, CalorieStreakTracker

logger = logging.getLogger(__name__)


def _unique_days(values: list[str]) -> list[datetime.date]:
    return sorted({MathTools.to_datetime(v).date() for v in values})


class StreakService:
    """Persist workout and calorie streaks in a key-value store."""

    WORKOUT_PREFIX = "workout_streak_"
    CALORIE_PREFIX = "calorie_streak_"

    def __init__(
        self,
        repo: AsyncStreakRepository,
        workout_repo: AsyncWorkoutRepository | None = None,
        cardio_repo: AsyncCardioRepository | None = None,
        food_repo: AsyncFoodLogRepository | None = None,
        settings: AnalyticsSettings | None = None,
    ) -> None:
        self.repo = repo
        self.workouts = workout_repo
        self.cardio = cardio_repo
        self.food = food_repo
        self.settings = settings or AnalyticsSettings()

    async def _load_state(self, key: str) -> dict | None:
        raw = await self.repo.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("discarding corrupt streak state for %s", key)
            return None
        if not isinstance(data, dict):
            logger.warning("discarding corrupt streak state for %s", key)
            return None
        return data

    async def load_workout_streak(self, user_id: str) -> WorkoutStreakTracker:
        data = await self._load_state(self.WORKOUT_PREFIX + user_id)
        try:
            return WorkoutStreakTracker.from_json(
                data, default_buffer=self.settings.workout_streak_buffer
            )
        except (TypeError, ValueError):
            logger.warning("resetting unreadable workout streak for %s", user_id)
            return WorkoutStreakTracker(default_buffer=self.settings.workout_streak_buffer)

    async def save_workout_streak(
        self, user_id: str, tracker: WorkoutStreakTracker
    ) -> None:
        await self.repo.set(self.WORKOUT_PREFIX + user_id, json.dumps(tracker.to_json()))

    async def load_calorie_streak(self, user_id: str) -> CalorieStreakTracker:
        data = await self._load_state(self.CALORIE_PREFIX + user_id)
        try:
            return CalorieStreakTracker.from_json(
                data, monthly_freezes=self.settings.calorie_monthly_freezes
            )
        except (TypeError, ValueError):
            logger.warning("resetting unreadable calorie streak for %s", user_id)
            return CalorieStreakTracker(monthly_freezes=self.settings.calorie_monthly_freezes)

    async def save_calorie_streak(
        self, user_id: str, tracker: CalorieStreakTracker
    ) -> None:
        await self.repo.set(self.CALORIE_PREFIX + user_id, json.dumps(tracker.to_json()))

    async def record_workout(
        self, user_id: str, date: datetime.datetime | datetime.date | str | None = None
    ) -> dict:
        """Register a workout for ``user_id`` and persist the new state."""
        tracker = await self.load_workout_streak(user_id)
        message = tracker.log_workout(date or datetime.datetime.now())
        await self.save_workout_streak(user_id, tracker)
        return message

    async def record_calorie_log(
        self,
        user_id: str,
        date: datetime.datetime | datetime.date | str | None = None,
        logged_today: bool = True,
    ) -> dict | None:
        tracker = await self.load_calorie_streak(user_id)
        message = tracker.log_calorie_tracking(
            date or datetime.datetime.now(), logged_today
        )
        await self.save_calorie_streak(user_id, tracker)
        return message

    async def current_streaks(
        self, user_id: str, today: datetime.datetime | datetime.date | str | None = None
    ) -> dict:
        workout = await self.load_workout_streak(user_id)
        calorie = await self.load_calorie_streak(user_id)
        return {
            "workout": {
                "current": workout.get_current_streak(today),
                "max": workout.max_streak,
                "buffer": workout.buffer,
            },
            "calorie": {
                "current": calorie.get_current_streak(today),
                "max": calorie.max_streak,
                "freezes_left": calorie.freezes_left,
            },
        }

    async def rebuild_workout_streak(self, user_id: str) -> WorkoutStreakTracker:
        """Replay stored workout and cardio days into a fresh tracker."""
        dates: list[str] = []
        if self.workouts is not None:
            dates += await self.workouts.fetch_dates(user_id)
        if self.cardio is not None:
            dates += await self.cardio.fetch_dates(user_id)
        tracker = WorkoutStreakTracker(default_buffer=self.settings.workout_streak_buffer)
        days = _unique_days(dates)
        for day in days:
            tracker.log_workout(day)
        await self.save_workout_streak(user_id, tracker)
        logger.info("rebuilt workout streak for %s from %d days", user_id, len(days))
        return tracker

    async def rebuild_calorie_streak(self, user_id: str) -> CalorieStreakTracker:
        """Replay stored food log days into a fresh tracker."""
        if self.food is None:
            raise ValueError("food log repository not configured")
        dates = await self.food.fetch_dates(user_id)
        tracker = CalorieStreakTracker(monthly_freezes=self.settings.calorie_monthly_freezes)
        for day in _unique_days(dates):
            tracker.log_calorie_tracking(day)
        await self.save_calorie_streak(user_id, tracker)
        return tracker

    async def reset_monthly_freezes(self, user_id: str) -> CalorieStreakTracker:
        tracker = await self.load_calorie_streak(user_id)
        tracker.reset_monthly_freezes()
        await self.save_calorie_streak(user_id, tracker)
        return tracker

    async def workout_dates_for_week(
        self,
        user_id: str,
        week_start: datetime.date | str,
        week_end: datetime.date | str,
    ) -> list[str]:
        """Return ISO days in [week_start, week_end] with any workout or cardio."""
        start = MathTools.to_datetime(week_start)
        end = MathTools.to_datetime(week_end) + datetime.timedelta(days=1)
        dates: list[str] = []
        if self.workouts is not None:
            dates += await self.workouts.fetch_dates(user_id)
        if self.cardio is not None:
            dates += await self.cardio.fetch_dates(user_id)
        return [
            d.isoformat()
            for d in _unique_days(dates)
            if start.date() <= d < end.date()
        ]
