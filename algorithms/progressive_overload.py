from __future__ import annotations
import datetime
from typing import Iterable, Optional

from .math_tools import MathTools
from .rules import Rule, first_match


def _weight_progress(ctx: tuple[dict, dict]) -> dict:
    last, prev = ctx
    increase = MathTools.format_pct(MathTools.percent_change(last["weight"], prev["weight"]))
    return {
        "type": "progress",
        "dimension": "weight",
        "message": f"Progress! You increased your weight by {increase}%",
        "emoji": "💪",
        "suggestion": "Keep up the momentum! Try maintaining this weight for 2-3 sessions before increasing again.",
    }


def _reps_progress(ctx: tuple[dict, dict]) -> dict:
    last, prev = ctx
    rep_increase = last["reps"] - prev["reps"]
    plural = "s" if rep_increase > 1 else ""
    return {
        "type": "progress",
        "dimension": "reps",
        "message": f"Progress! You did {MathTools.fmt(rep_increase)} more rep{plural}",
        "emoji": "👏",
        "suggestion": "Great work! Once you can do 12+ reps comfortably, consider increasing the weight.",
    }


def _sets_progress(ctx: tuple[dict, dict]) -> dict:
    return {
        "type": "progress",
        "dimension": "sets",
        "message": "Progress! You added more sets",
        "emoji": "🔥",
        "suggestion": "Nice volume increase! Monitor your recovery and adjust if needed.",
    }


def _volume_progress(ctx: tuple[dict, dict]) -> dict:
    last, prev = ctx
    increase = MathTools.format_pct(MathTools.percent_change(last["volume"], prev["volume"]))
    return {
        "type": "progress",
        "dimension": "volume",
        "message": f"Progress! Total volume increased by {increase}%",
        "emoji": "📈",
        "suggestion": "Excellent! Your total work output is improving.",
    }


# weight beats reps beats sets beats volume
IMPROVEMENT_RULES: list[Rule] = [
    Rule("weight", lambda c: c[0]["weight"] > c[1]["weight"], _weight_progress),
    Rule("reps", lambda c: c[0]["reps"] > c[1]["reps"], _reps_progress),
    Rule("sets", lambda c: c[0]["sets"] > c[1]["sets"], _sets_progress),
    Rule("volume", lambda c: c[0]["volume"] > c[1]["volume"], _volume_progress),
]


class ProgressiveOverloadEngine:
    """Track weight, rep, set and volume progression per exercise."""

    STAGNATION_WINDOW: int = 6
    CONSISTENCY_MIN: int = 4

    def __init__(self) -> None:
        self.exercise_history: dict[str, list[dict]] = {}
        self._stagnation_rules: list[Rule] = [
            Rule(
                "stagnation",
                lambda c: c[1] >= self.STAGNATION_WINDOW,
                self._stagnation_item,
            ),
            Rule(
                "consistency",
                lambda c: c[1] >= self.CONSISTENCY_MIN,
                self._consistency_item,
            ),
        ]

    def log_session(
        self,
        exercise: str,
        weight: float,
        reps: int,
        sets: int,
        date: datetime.datetime | datetime.date | str,
    ) -> dict:
        """Append a session for ``exercise`` and keep the history sorted."""
        log = {
            "weight": weight,
            "reps": reps,
            "sets": sets,
            "date": MathTools.to_datetime(date),
            "volume": MathTools.volume(weight, reps, sets),
        }
        logs = self.exercise_history.setdefault(exercise, [])
        logs.append(log)
        logs.sort(key=lambda l: l["date"])
        return log

    def load_history(self, rows: Iterable[dict]) -> None:
        """Replace all history with canonical set rows."""
        self.exercise_history = {}
        for row in rows:
            self.log_session(
                row["exercise"], row["weight"], row["reps"], row["sets"], row["date"]
            )

    def exercises(self) -> list[str]:
        return list(self.exercise_history)

    def history(self, exercise: str) -> list[dict]:
        return [dict(l) for l in self.exercise_history.get(exercise, [])]

    def suggest_increase(self, exercise: str) -> dict:
        """Return a progression feedback item for ``exercise``."""
        logs = self.exercise_history.get(exercise, [])
        if len(logs) < 2:
            return {
                "type": "info",
                "message": "Keep logging to unlock personalized insights!",
                "emoji": "📊",
                "suggestion": None,
            }
        last, prev = logs[-1], logs[-2]
        progress = first_match(IMPROVEMENT_RULES, (last, prev))
        if progress is not None:
            return progress

        check_limit = min(self.STAGNATION_WINDOW, len(logs))
        stagnant_count = sum(
            1
            for log in logs[-check_limit:]
            if log["weight"] == last["weight"]
            and log["reps"] == last["reps"]
            and log["sets"] == last["sets"]
        )
        item = first_match(self._stagnation_rules, (last, stagnant_count))
        if item is not None:
            return item
        return {
            "type": "consistent",
            "message": "Keep up the consistency!",
            "emoji": "✅",
            "suggestion": "You're building a solid foundation. Progress will come!",
        }

    def _stagnation_item(self, ctx: tuple[dict, int]) -> dict:
        last, count = ctx
        return {
            "type": "stagnation",
            "severity": "high",
            "message": (
                f"Plateau detected: {MathTools.fmt(last['weight'])}kg, "
                f"{MathTools.fmt(last['reps'])} reps for {MathTools.fmt(last['sets'])} sets "
                f"for {count} sessions."
            ),
            "emoji": "⚠️",
            "suggestion": self.get_progression_suggestion(last),
            "data": {"sessions": count},
        }

    @staticmethod
    def _consistency_item(ctx: tuple[dict, int]) -> dict:
        last, count = ctx
        return {
            "type": "consistency",
            "severity": "low",
            "message": (
                f"You've maintained {MathTools.fmt(last['weight'])}kg, "
                f"{MathTools.fmt(last['reps'])} reps for {count} sessions."
            ),
            "emoji": "💡",
            "suggestion": "Maintaining is fine, but consider progressive overload soon. Try adding weight, reps, or sets.",
            "data": {"sessions": count},
        }

    @staticmethod
    def get_progression_suggestion(last_session: dict) -> str:
        """Return ordered, numbered progression tips for ``last_session``."""
        weight = last_session["weight"]
        reps = last_session["reps"]
        sets = last_session["sets"]
        suggestions: list[str] = []

        if weight >= 20:
            suggestions.append(
                f"1️⃣ **Add Weight**: Increase to {weight + 2.5:.1f}-{weight + 5:.1f}kg (5-10% increase)"
            )
        elif weight >= 5:
            suggestions.append(
                f"1️⃣ **Add Weight**: Increase to {weight + 1:.1f}-{weight + 2.5:.1f}kg (5-10% increase)"
            )
        else:
            suggestions.append("1️⃣ **Add Weight**: Increase by 0.5-1kg")

        if reps < 8:
            suggestions.append(
                f"2️⃣ **Add Reps**: Aim for {MathTools.fmt(reps + 1)}-{MathTools.fmt(reps + 2)} reps (target: 8-12 for growth)"
            )
        elif reps < 12:
            suggestions.append(
                f"2️⃣ **Add Reps**: Aim for {MathTools.fmt(reps + 1)}-{MathTools.fmt(reps + 2)} reps OR increase weight and drop to 6-8 reps"
            )
        else:
            suggestions.append(
                "2️⃣ **Increase Weight**: You're doing 12+ reps. Increase weight by 5-10% and aim for 6-8 reps"
            )

        if sets < 3:
            suggestions.append("3️⃣ **Add Sets**: Increase to 3-4 sets for better volume")
        elif sets < 5:
            suggestions.append(
                f"3️⃣ **Add Sets**: Consider adding 1 more set (total: {MathTools.fmt(sets + 1)} sets)"
            )
        else:
            suggestions.append(
                f"3️⃣ **Volume is sufficient**: {MathTools.fmt(sets)} sets is plenty. Focus on weight/reps instead."
            )

        suggestions.append(
            "4️⃣ **Tempo Training**: Slow down eccentric (3-2-1 tempo: 3 sec down, 2 sec pause, 1 sec up)"
        )
        if reps >= 12:
            suggestions.append(
                "5️⃣ **Time Under Tension**: Reduce rest time by 15-30 seconds between sets"
            )
        else:
            suggestions.append(
                "5️⃣ **Rest Optimization**: Ensure 2-3 min rest between sets for strength work"
            )
        suggestions.append(
            "6️⃣ **Exercise Variation**: Try a similar exercise (e.g., dumbbell → barbell, or vice versa)"
        )
        suggestions.append(
            "7️⃣ **Deload Week**: If feeling fatigued, reduce weight by 20% for 1 week, then return stronger"
        )
        return "\n".join(suggestions)

    def get_progress_summary(self, exercise: str) -> Optional[dict]:
        """Compare the first and latest session of ``exercise``."""
        logs = self.exercise_history.get(exercise, [])
        if not logs:
            return None
        first, last = logs[0], logs[-1]
        weight_progress = last["weight"] - first["weight"]
        volume_progress = last["volume"] - first["volume"]
        return {
            "total_sessions": len(logs),
            "first_weight": first["weight"],
            "current_weight": last["weight"],
            "weight_progress": weight_progress,
            "weight_progress_percent": MathTools.format_pct(
                MathTools.percent_change(last["weight"], first["weight"])
            ),
            "first_volume": first["volume"],
            "current_volume": last["volume"],
            "volume_progress": volume_progress,
            "volume_progress_percent": MathTools.format_pct(
                MathTools.percent_change(last["volume"], first["volume"])
            ),
            "first_date": first["date"],
            "last_date": last["date"],
            "days_tracking": MathTools.whole_days(first["date"], last["date"]),
        }

    def get_stagnant_exercises(self) -> list[dict]:
        stagnant: list[dict] = []
        for exercise in self.exercise_history:
            result = self.suggest_increase(exercise)
            if result["type"] == "stagnation":
                stagnant.append({"exercise": exercise, **result})
        return stagnant

    def get_personal_records(self, exercise: str) -> Optional[dict]:
        """Return best weight, reps and volume sessions for ``exercise``."""
        logs = self.exercise_history.get(exercise, [])
        if not logs:
            return None
        max_weight = max(l["weight"] for l in logs)
        max_reps = max(l["reps"] for l in logs)
        max_volume = max(l["volume"] for l in logs)
        w_sess = next(l for l in logs if l["weight"] == max_weight)
        r_sess = next(l for l in logs if l["reps"] == max_reps)
        v_sess = next(l for l in logs if l["volume"] == max_volume)
        return {
            "max_weight": {
                "value": max_weight,
                "date": w_sess["date"],
                "reps": w_sess["reps"],
                "sets": w_sess["sets"],
            },
            "max_reps": {
                "value": max_reps,
                "date": r_sess["date"],
                "weight": r_sess["weight"],
                "sets": r_sess["sets"],
            },
            "max_volume": {
                "value": max_volume,
                "date": v_sess["date"],
                "weight": v_sess["weight"],
                "reps": v_sess["reps"],
                "sets": v_sess["sets"],
            },
        }

    def check_for_pr(self, exercise: str, session: dict) -> dict | list[dict] | None:
        """Return PR announcements for ``session`` against stored history."""
        logs = self.exercise_history.get(exercise, [])
        if not logs:
            return {
                "type": "first",
                "message": "First time logging this exercise! 🎉",
            }
        max_weight = max(l["weight"] for l in logs)
        max_reps = max(l["reps"] for l in logs)
        max_volume = max(l["volume"] for l in logs)
        weight = session["weight"]
        reps = session["reps"]
        current_volume = MathTools.volume(weight, reps, session.get("sets", 1))

        prs: list[dict] = []
        if weight > max_weight:
            prs.append(
                {
                    "type": "weight",
                    "message": f"New weight PR! {MathTools.fmt(weight)}kg (previous: {MathTools.fmt(max_weight)}kg)",
                    "emoji": "🏆",
                }
            )
        if reps > max_reps:
            prs.append(
                {
                    "type": "reps",
                    "message": f"New rep PR! {MathTools.fmt(reps)} reps (previous: {MathTools.fmt(max_reps)} reps)",
                    "emoji": "💥",
                }
            )
        if current_volume > max_volume:
            prs.append(
                {
                    "type": "volume",
                    "message": f"New volume PR! {MathTools.fmt(current_volume)}kg total (previous: {MathTools.fmt(max_volume)}kg)",
                    "emoji": "📊",
                }
            )
        return prs or None
