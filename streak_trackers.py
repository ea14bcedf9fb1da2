from __future__ import annotations
import datetime
from typing import Optional

from algorithms.math_tools import MathTools

DateLike = datetime.datetime | datetime.date | str


def _parse(value: Optional[DateLike]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    return MathTools.to_datetime(value)


class WorkoutStreakTracker:
    """Daily workout streak with a forgiving buffer and half-credit recovery."""

    MILESTONES = (7, 14, 21, 30, 100)
    DEFAULT_BUFFER = 2

    def __init__(
        self,
        streak_count: int = 0,
        last_active: Optional[DateLike] = None,
        max_streak: int = 0,
        buffer: int | None = None,
        recovery_bonus: bool = False,
        default_buffer: int = DEFAULT_BUFFER,
    ) -> None:
        self.default_buffer = default_buffer
        self.streak_count = streak_count
        self.last_active = _parse(last_active)
        self.max_streak = max_streak
        self.buffer = default_buffer if buffer is None else buffer
        self.recovery_bonus = recovery_bonus

    @classmethod
    def from_json(
        cls, data: dict | None, default_buffer: int = DEFAULT_BUFFER
    ) -> "WorkoutStreakTracker":
        data = data or {}
        buffer = data.get("buffer")
        return cls(
            streak_count=int(data.get("streakCount") or 0),
            last_active=data.get("lastActive"),
            max_streak=int(data.get("maxStreak") or 0),
            buffer=None if buffer is None else int(buffer),
            recovery_bonus=bool(data.get("recoveryBonus", False)),
            default_buffer=default_buffer,
        )

    def to_json(self) -> dict:
        return {
            "streakCount": self.streak_count,
            "lastActive": self.last_active.isoformat() if self.last_active else None,
            "maxStreak": self.max_streak,
            "buffer": self.buffer,
            "recoveryBonus": self.recovery_bonus,
        }

    def log_workout(self, date: DateLike) -> dict:
        """Register a workout on ``date`` and return the resulting message."""
        workout_date = MathTools.to_datetime(date)
        if self.last_active is None:
            self.streak_count = 1
            self.last_active = workout_date
            self.max_streak = max(self.max_streak, self.streak_count)
            return self._reward_user()

        days_between = MathTools.calendar_days(self.last_active, workout_date)
        if days_between == 0:
            return self._same_day_message()
        if days_between == 1:
            self.streak_count += 1
            self.buffer = self.default_buffer
            self.max_streak = max(self.max_streak, self.streak_count)
            self.last_active = workout_date
            return self._check_milestone()
        if 1 < days_between <= self.buffer + 1:
            # each forgiven day spends down the buffer
            self.streak_count += 1
            self.buffer -= days_between - 1
            self.max_streak = max(self.max_streak, self.streak_count)
            self.last_active = workout_date
            return self._check_milestone()

        # dates earlier than last_active also land here
        self.recovery_bonus = True
        self.streak_count = max(1, self.streak_count // 2)
        self.last_active = workout_date
        self.buffer = self.default_buffer
        return self._recovery_message()

    def get_current_streak(self, today: Optional[DateLike] = None) -> int:
        """Return the streak, or 0 once the buffer has lapsed."""
        if self.last_active is None:
            return 0
        now = _parse(today) or datetime.datetime.now()
        if MathTools.calendar_days(self.last_active, now) > self.buffer + 1:
            return 0
        return self.streak_count

    def _check_milestone(self) -> dict:
        if self.streak_count in self.MILESTONES:
            return {
                "message": f"🏆 You reached a {self.streak_count}-day workout streak! Celebrate with a badge or reward.",
                "is_milestone": True,
                "streak_count": self.streak_count,
            }
        return self._positive_cue()

    def _positive_cue(self) -> dict:
        count = self.streak_count
        if count == 1:
            message = "👏 First day! You're building a new habit!"
        elif count < 7:
            message = f"🌱 {count}-day streak! Keep it up, every day counts!"
        elif count < 21:
            message = f"💪 {count}-day streak! You're gaining momentum!"
        else:
            message = f"🔥 {count}-day streak! You're unstoppable!"
        return {"message": message, "is_milestone": False, "streak_count": count}

    def _reward_user(self) -> dict:
        return {
            "message": "🎉 You've started a workout streak! Keep moving for emotional rewards and health!",
            "is_milestone": False,
            "streak_count": self.streak_count,
        }

    def _recovery_message(self) -> dict:
        return {
            "message": (
                "💪 Streak paused, but your progress doesn't disappear! Come back and get "
                "a Recovery Bonus: rebuild your streak twice as fast for 3 days!"
            ),
            "is_recovery": True,
            "streak_count": self.streak_count,
        }

    def _same_day_message(self) -> dict:
        return {
            "message": f"🔥 {self.streak_count}-day streak continues! Great work today!",
            "is_milestone": False,
            "streak_count": self.streak_count,
        }


class CalorieStreakTracker:
    """Daily calorie logging streak with a monthly allowance of freezes."""

    MILESTONES = (7, 15, 30, 100)
    MONTHLY_FREEZES = 3
    MAX_FREEZE_GAP = 3

    def __init__(
        self,
        streak_count: int = 0,
        max_streak: int = 0,
        freezes_left: int | None = None,
        last_log_date: Optional[DateLike] = None,
        monthly_freezes: int = MONTHLY_FREEZES,
    ) -> None:
        self.monthly_freezes = monthly_freezes
        self.streak_count = streak_count
        self.max_streak = max_streak
        self.freezes_left = monthly_freezes if freezes_left is None else freezes_left
        self.last_log_date = _parse(last_log_date)

    @classmethod
    def from_json(
        cls, data: dict | None, monthly_freezes: int = MONTHLY_FREEZES
    ) -> "CalorieStreakTracker":
        data = data or {}
        freezes = data.get("freezesLeft")
        return cls(
            streak_count=int(data.get("streakCount") or 0),
            max_streak=int(data.get("maxStreak") or 0),
            freezes_left=None if freezes is None else int(freezes),
            last_log_date=data.get("lastLogDate"),
            monthly_freezes=monthly_freezes,
        )

    def to_json(self) -> dict:
        return {
            "streakCount": self.streak_count,
            "maxStreak": self.max_streak,
            "freezesLeft": self.freezes_left,
            "lastLogDate": self.last_log_date.isoformat() if self.last_log_date else None,
        }

    def log_calorie_tracking(
        self, date: DateLike, logged_today: bool = True
    ) -> Optional[dict]:
        log_date = MathTools.to_datetime(date)
        if self.last_log_date is None:
            if not logged_today:
                return None
            self.streak_count = 1
            self.last_log_date = log_date
            self.max_streak = max(self.max_streak, 1)
            return self._first_log_message()

        days_since = MathTools.calendar_days(self.last_log_date, log_date)
        if days_since == 0:
            return self._same_day_message()

        if not logged_today:
            if days_since > 1:
                self.streak_count = 0
                return self._restart_message()
            return None

        if days_since == 1:
            self.streak_count += 1
            self.last_log_date = log_date
            self.max_streak = max(self.max_streak, self.streak_count)
            return self._streak_cue()
        if days_since > 1 and self.freezes_left > 0 and days_since <= self.MAX_FREEZE_GAP:
            self.freezes_left -= 1
            self.streak_count += 1
            self.last_log_date = log_date
            self.max_streak = max(self.max_streak, self.streak_count)
            return self._pause_message()

        self.streak_count = 1
        self.last_log_date = log_date
        return self._restart_message()

    def get_current_streak(self, today: Optional[DateLike] = None) -> int:
        if self.last_log_date is None:
            return 0
        now = _parse(today) or datetime.datetime.now()
        if MathTools.calendar_days(self.last_log_date, now) > 1:
            return 0
        return self.streak_count

    def reset_monthly_freezes(self) -> None:
        self.freezes_left = self.monthly_freezes

    def _streak_cue(self) -> dict:
        count = self.streak_count
        if count in self.MILESTONES:
            return {
                "message": f"🥇 Wow! {count} days of logging, badge unlocked!",
                "is_milestone": True,
                "streak_count": count,
            }
        if count < 7:
            message = f"❤️ {count}-day calorie logging streak. Every log is progress!"
        elif count < 30:
            message = f"💚 {count}-day streak: habits and health improving every day!"
        else:
            message = f"🌟 Amazing! {count}-day streak. You're an inspiration!"
        return {"message": message, "is_milestone": False, "streak_count": count}

    def _pause_message(self) -> dict:
        return {
            "message": (
                f"⏸ Streak paused (freeze used, {self.freezes_left} left). Life happens! "
                "You still keep your progress. Log tomorrow to continue your streak."
            ),
            "is_freeze": True,
            "streak_count": self.streak_count,
            "freezes_left": self.freezes_left,
        }

    def _restart_message(self) -> dict:
        return {
            "message": (
                "🔄 Streak restarted. Every day is a fresh start and your progress isn't lost. "
                f"Your all-time best ({self.max_streak} days) is waiting to be beaten!"
            ),
            "is_restart": True,
            "streak_count": self.streak_count,
            "max_streak": self.max_streak,
        }

    def _first_log_message(self) -> dict:
        return {
            "message": "🎉 You've started a calorie tracking streak! Every log brings you closer to your goals!",
            "is_milestone": False,
            "streak_count": self.streak_count,
        }

    def _same_day_message(self) -> dict:
        return {
            "message": f"🔥 {self.streak_count}-day streak continues! Keep logging!",
            "is_milestone": False,
            "streak_count": self.streak_count,
        }
