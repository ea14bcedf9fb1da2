from __future__ import annotations
import datetime
from typing import Iterable, Optional

from .math_tools import MathTools


class NotificationThrottle:
    """Remember when each key was last notified."""

    def __init__(self, interval_days: float = 7) -> None:
        self.interval_days = interval_days
        self.last_notified_at: dict[str, datetime.datetime] = {}

    def is_due(self, key: str, now: datetime.datetime) -> bool:
        last = self.last_notified_at.get(key)
        if last is None:
            return True
        return MathTools.fractional_days(last, now) >= self.interval_days

    def mark_notified(self, key: str, now: datetime.datetime) -> None:
        self.last_notified_at[key] = now


class StagnationDetector:
    """Detect plateaus, celebrate plateau breaks and track progress streaks."""

    DEFAULT_THRESHOLD: int = 6
    SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        throttle: NotificationThrottle | None = None,
    ) -> None:
        self.threshold = threshold
        self.exercise_logs: dict[str, list[dict]] = {}
        self.throttle = throttle or NotificationThrottle()

    def log_exercise(
        self,
        exercise: str,
        weight: float,
        reps: int,
        sets: int,
        date: datetime.datetime | datetime.date | str,
    ) -> dict:
        log = {
            "weight": weight,
            "reps": reps,
            "sets": sets,
            "date": MathTools.to_datetime(date),
            "volume": MathTools.volume(weight, reps, sets),
        }
        logs = self.exercise_logs.setdefault(exercise, [])
        logs.append(log)
        logs.sort(key=lambda l: l["date"])
        return log

    def load_logs(self, rows: Iterable[dict]) -> None:
        """Replace all logs with canonical set rows."""
        self.exercise_logs = {}
        for row in rows:
            self.log_exercise(
                row["exercise"], row["weight"], row["reps"], row["sets"], row["date"]
            )

    @staticmethod
    def _completely_stagnant(logs: list[dict]) -> bool:
        return (
            len({l["weight"] for l in logs}) == 1
            and len({l["reps"] for l in logs}) == 1
            and len({l["sets"] for l in logs}) == 1
        )

    def check_stagnation(
        self, exercise: str, threshold: int | None = None
    ) -> Optional[dict]:
        """Classify the last ``threshold`` sessions of ``exercise``.

        Complete stagnation (weight, reps and sets identical) takes
        precedence over weight stagnation, which takes precedence over
        volume stagnation (less than 10% spread around the mean volume).
        """
        if threshold is None:
            threshold = self.threshold
        logs = self.exercise_logs.get(exercise, [])
        if len(logs) < threshold:
            return None
        recent = logs[-threshold:]
        last = recent[-1]

        if self._completely_stagnant(recent):
            days = MathTools.whole_days(recent[0]["date"], last["date"])
            return {
                "type": "complete_stagnation",
                "severity": "high",
                "message": (
                    f"Plateau detected: {exercise} at {MathTools.fmt(last['weight'])}kg, "
                    f"{MathTools.fmt(last['reps'])} reps, {MathTools.fmt(last['sets'])} sets "
                    f"for {threshold}+ sessions ({days} days)"
                ),
                "emoji": "⚠️",
                "suggestion": self.get_suggestion_for_stagnation(last),
                "data": {
                    "weight": last["weight"],
                    "reps": last["reps"],
                    "sets": last["sets"],
                    "sessions": threshold,
                    "days": days,
                },
            }

        if len({l["weight"] for l in recent}) == 1:
            weight = MathTools.fmt(last["weight"])
            return {
                "type": "weight_stagnation",
                "severity": "medium",
                "message": f"Weight plateau: {exercise} at {weight}kg for {threshold} sessions",
                "emoji": "💭",
                "suggestion": (
                    f"You've been at {weight}kg for a while. Try adding 2.5-5kg, "
                    "or focus on increasing reps to 12+ before adding weight."
                ),
                "data": {"weight": last["weight"], "sessions": threshold},
            }

        avg_volume, variation = MathTools.variation_percent(l["volume"] for l in recent)
        if variation < 10 and avg_volume > 0:
            return {
                "type": "volume_stagnation",
                "severity": "low",
                "message": f"Volume plateau: {exercise} total volume hasn't changed much",
                "emoji": "📊",
                "suggestion": (
                    "Your total volume has been flat for several sessions. "
                    "Try increasing weight, reps, or sets to progress."
                ),
                "data": {
                    "avg_volume": MathTools.round_half_up(avg_volume),
                    "variation": MathTools.format_pct(variation),
                },
            }
        return None

    @staticmethod
    def get_suggestion_for_stagnation(last_log: dict) -> str:
        weight = last_log["weight"]
        reps = last_log["reps"]
        sets = last_log["sets"]
        suggestions = ["**Try one of these evidence-based strategies:**\n"]

        if weight >= 20:
            suggestions.append(
                f"1️⃣ **Add Weight**: Increase to {weight * 1.05:.1f}-{weight * 1.10:.1f}kg (5-10% increase)"
            )
        elif weight >= 5:
            suggestions.append(
                f"1️⃣ **Add Weight**: Increase to {weight + 1:.1f}-{weight * 1.10:.1f}kg (5-10% increase)"
            )
        else:
            suggestions.append("1️⃣ **Add Weight**: Increase by 0.5-1kg")

        if reps < 8:
            suggestions.append(
                f"2️⃣ **Add Reps**: Aim for {MathTools.fmt(reps + 1)}-{MathTools.fmt(reps + 2)} reps (target: 8-12 for hypertrophy)"
            )
        elif reps < 12:
            suggestions.append(
                f"2️⃣ **Add Reps**: Aim for {MathTools.fmt(reps + 1)}-{MathTools.fmt(reps + 2)} reps OR increase weight and use 6-8 reps"
            )
        else:
            suggestions.append(
                "2️⃣ **Increase Weight**: You're doing 12+ reps. Increase weight by 5-10% and aim for 6-8 reps"
            )

        if sets < 3:
            suggestions.append("3️⃣ **Add Sets**: Increase to 3-4 sets (optimal for most exercises)")
        elif sets < 5:
            suggestions.append(
                f"3️⃣ **Add Sets**: Consider adding 1 more set ({MathTools.fmt(sets + 1)} sets total)"
            )
        else:
            suggestions.append(
                f"3️⃣ **Focus on Intensity**: {MathTools.fmt(sets)} sets is sufficient. Focus on weight/reps instead."
            )

        suggestions.append(
            "4️⃣ **Tempo Training**: Use 3-2-1 tempo (3 sec eccentric, 2 sec pause, 1 sec concentric)"
        )
        if reps >= 12:
            suggestions.append("5️⃣ **Time Under Tension**: Reduce rest to 60-90 seconds for hypertrophy")
        else:
            suggestions.append("5️⃣ **Rest Optimization**: Ensure 2-3 min rest between sets for strength work")
        suggestions.append(
            "6️⃣ **Exercise Variation**: Try a similar exercise (e.g., barbell → dumbbell, or vice versa)"
        )
        suggestions.append("7️⃣ **Deload Week**: Reduce weight by 20% for 1 week, then return stronger")
        suggestions.append(
            "8️⃣ **Drop Sets**: After your working sets, reduce weight by 20-30% and do 1 more set to failure"
        )
        suggestions.append(
            "9️⃣ **Progressive Overload**: Try increasing one variable per week (weight OR reps OR sets, not all)"
        )
        return "\n".join(suggestions)

    def check_plateau_break(self, exercise: str) -> Optional[dict]:
        """Celebrate a latest session that improves on a six-session plateau."""
        logs = self.exercise_logs.get(exercise, [])
        if len(logs) < 7:
            return None
        previous = logs[-7:-1]
        if not self._completely_stagnant(previous):
            return None
        last = logs[-1]
        prev = previous[-1]

        improvements: list[str] = []
        if last["weight"] > prev["weight"]:
            pct = MathTools.format_pct(MathTools.percent_change(last["weight"], prev["weight"]))
            improvements.append(f"weight (+{pct}%)")
        if last["reps"] > prev["reps"]:
            improvements.append(f"reps (+{MathTools.fmt(last['reps'] - prev['reps'])})")
        if last["sets"] > prev["sets"]:
            improvements.append(f"sets (+{MathTools.fmt(last['sets'] - prev['sets'])})")
        if last["volume"] > prev["volume"]:
            pct = MathTools.format_pct(MathTools.percent_change(last["volume"], prev["volume"]))
            improvements.append(f"volume (+{pct}%)")

        if not improvements:
            return None
        joined = ", ".join(improvements)
        return {
            "type": "plateau_broken",
            "message": f"🎉 Plateau broken on {exercise}!",
            "improvements": joined,
            "emoji": "🔥",
            "celebration": f"You broke through! Improved: {joined}. Keep this momentum going!",
        }

    def get_all_stagnant_exercises(self) -> list[dict]:
        stagnant: list[dict] = []
        for exercise in self.exercise_logs:
            stagnation = self.check_stagnation(exercise)
            if stagnation:
                stagnant.append({"exercise": exercise, **stagnation})
        stagnant.sort(key=lambda s: self.SEVERITY_ORDER[s["severity"]])
        return stagnant

    def get_motivation_message(self, exercise: str) -> dict:
        logs = self.exercise_logs.get(exercise, [])
        if not logs:
            return {
                "message": "Start your journey! Log your first session.",
                "emoji": "🚀",
                "type": "start",
            }
        if len(logs) == 1:
            return {
                "message": "Great start! Keep logging to track your progress.",
                "emoji": "💪",
                "type": "beginner",
            }

        recent = logs[-3:]
        has_progress = any(
            cur["weight"] > prev["weight"]
            or cur["reps"] > prev["reps"]
            or cur["volume"] > prev["volume"]
            for prev, cur in zip(recent, recent[1:])
        )
        if has_progress:
            return {
                "message": "You're making progress! Keep pushing!",
                "emoji": "📈",
                "type": "progress",
            }

        if len(logs) >= 5:
            span = MathTools.fractional_days(logs[-5]["date"], logs[-1]["date"])
            if span <= 14:
                return {
                    "message": "Consistency is key! You're building solid habits.",
                    "emoji": "🔥",
                    "type": "consistent",
                }

        if self.check_stagnation(exercise):
            return {
                "message": "Time to level up! Try increasing intensity.",
                "emoji": "⚡",
                "type": "challenge",
            }
        return {
            "message": "Keep going! Every rep counts.",
            "emoji": "💯",
            "type": "general",
        }

    def get_progress_streak(self, exercise: str) -> dict:
        """Count trailing sessions whose volume beat the session before."""
        logs = self.exercise_logs.get(exercise, [])
        if len(logs) < 2:
            return {"streak": 0, "message": "Start logging to build a streak!", "emoji": "💭"}

        streak = 0
        for i in range(len(logs) - 1, 0, -1):
            if logs[i]["volume"] > logs[i - 1]["volume"]:
                streak += 1
            else:
                break

        if streak == 0:
            message, emoji = "No current streak. Time to progress!", "💭"
        elif streak == 1:
            message, emoji = "Progress streak started! Keep it going!", "🔥"
        elif streak < 5:
            message, emoji = f"{streak} sessions of progress! You're on fire!", "🔥"
        else:
            message, emoji = f"Amazing {streak}-session streak! Unstoppable!", "🏆"
        return {"streak": streak, "message": message, "emoji": emoji}

    def should_notify(
        self, exercise: str, now: datetime.datetime | None = None
    ) -> bool:
        """Return True at most once per throttle interval for ``exercise``."""
        now = now or datetime.datetime.now()
        if not self.throttle.is_due(exercise, now):
            return False
        self.throttle.mark_notified(exercise, now)
        return True
