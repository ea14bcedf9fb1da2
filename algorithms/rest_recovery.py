from __future__ import annotations
import datetime
from typing import Iterable

from .math_tools import MathTools
from .rules import Rule, first_match

VIGOROUS = {"vigorous", "high"}
WARNING_SEVERITIES = {"critical", "high", "medium"}

# (body_parts substrings, canonical group), checked in order
BODY_PART_GROUPS: list[tuple[tuple[str, ...], str]] = [
    (("chest",), "chest"),
    (("back",), "back"),
    (("shoulder",), "shoulders"),
    (("leg", "quad", "hamstring"), "legs"),
    (("arm", "bicep", "tricep"), "arms"),
    (("core", "ab"), "core"),
]


def _excessive(ctx: tuple[str, int]) -> dict:
    group, frequency = ctx
    return {
        "type": "overtraining",
        "severity": "high",
        "message": f"⚠️ Excessive frequency: {frequency} {group} workouts this week",
        "suggestion": (
            f"Training {group} daily is likely causing overtraining. Rest is crucial "
            "for muscle growth. Reduce to 2-4x per week."
        ),
        "emoji": "🚨",
        "data": {"muscle_group": group, "frequency": frequency},
    }


def _very_high(ctx: tuple[str, int]) -> dict:
    group, frequency = ctx
    return {
        "type": "overtraining",
        "severity": "medium",
        "message": f"⚠️ High frequency: {frequency} {group} workouts this week",
        "suggestion": (
            f"You're training {group} almost daily. Most people see best results "
            "with 2-4x per week. Consider adding rest days."
        ),
        "emoji": "⚠️",
        "data": {"muscle_group": group, "frequency": frequency},
    }


def _high(ctx: tuple[str, int]) -> dict:
    group, frequency = ctx
    return {
        "type": "high_frequency",
        "severity": "low",
        "message": f"High frequency: {frequency} {group} workouts this week",
        "suggestion": (
            "This is high frequency. Ensure adequate rest and recovery. "
            "Most people optimize at 2-4x per week."
        ),
        "emoji": "💡",
        "data": {"muscle_group": group, "frequency": frequency},
    }


def _single(ctx: tuple[str, int]) -> dict:
    group, frequency = ctx
    return {
        "type": "undertraining",
        "severity": "low",
        "message": f"Only 1 {group} workout this week",
        "suggestion": f"Consider adding 1-2 more {group} sessions for optimal growth and strength gains.",
        "emoji": "💡",
        "data": {"muscle_group": group, "frequency": frequency},
    }


def _optimal(ctx: tuple[str, int]) -> dict:
    group, frequency = ctx
    return {
        "type": "optimal",
        "severity": "none",
        "message": f"Great {group} training frequency ({frequency}/week)",
        "suggestion": "This is an optimal training frequency for most people.",
        "emoji": "✅",
        "data": {"muscle_group": group, "frequency": frequency},
    }


# 5 is intercepted by high_frequency before the optimal 3-5 band; 2 yields nothing
FREQUENCY_RULES: list[Rule] = [
    Rule("excessive", lambda c: c[1] >= 7, _excessive),
    Rule("very_high", lambda c: c[1] == 6, _very_high),
    Rule("high", lambda c: c[1] == 5, _high),
    Rule("single", lambda c: c[1] == 1, _single),
    Rule("optimal", lambda c: 3 <= c[1] <= 5, _optimal),
]

SCORE_PENALTIES = {"critical": 30, "high": 20, "medium": 10, "low": 5}
OPTIMAL_BONUS = 5

RATING_TIERS: list[tuple[float, str, str, str]] = [
    (90, "Excellent", "🌟", "Your training and recovery are perfectly balanced!"),
    (75, "Good", "😊", "You're doing great! Minor adjustments may help."),
    (60, "Fair", "😐", "Consider adding more rest days or reducing intensity."),
    (40, "Poor", "😟", "Your recovery needs attention. Add rest days soon."),
    (float("-inf"), "Critical", "🚨", "Take immediate rest! You're at risk of overtraining."),
]


class RestRecoveryEngine:
    """Analyse weekly training frequency, rest days and recovery."""

    WINDOW_DAYS: int = 7

    def __init__(self) -> None:
        self.sessions: list[dict] = []

    def log_session(
        self,
        muscle_group: str,
        date: datetime.datetime | datetime.date | str,
        intensity: str = "moderate",
        duration: float = 45,
    ) -> dict:
        session = {
            "muscle_group": muscle_group.lower(),
            "date": MathTools.to_datetime(date),
            "intensity": intensity,
            "duration": duration,
        }
        self.sessions.append(session)
        self.sessions.sort(key=lambda s: s["date"])
        return session

    def load_sessions(self, rows: Iterable[dict]) -> None:
        """Replace all sessions with canonical recovery rows."""
        self.sessions = []
        for row in rows:
            self.log_session(
                self.extract_muscle_group(row),
                row["date"],
                row.get("intensity") or "moderate",
                row.get("duration") or 45,
            )

    @staticmethod
    def extract_muscle_group(row: dict) -> str:
        """Map ``body_parts`` text or ``muscle_group`` to a canonical group."""
        body_parts = row.get("body_parts")
        if body_parts:
            parts = body_parts.lower()
            for needles, group in BODY_PART_GROUPS:
                if any(n in parts for n in needles):
                    return group
        if row.get("muscle_group"):
            return row["muscle_group"].lower()
        return "full body"

    @staticmethod
    def _now(current_date: datetime.datetime | datetime.date | str | None) -> datetime.datetime:
        if current_date is None:
            return datetime.datetime.now()
        return MathTools.to_datetime(current_date)

    def _rest_day_item(self, rest_days: int) -> dict:
        if rest_days < 1:
            return {
                "type": "no_rest",
                "severity": "critical",
                "message": "🚨 You had 0 rest days this week!",
                "suggestion": (
                    "Rest is crucial for muscle recovery and growth. Schedule at least "
                    "1-2 complete rest days per week. Without rest, you risk injury and "
                    "decreased performance."
                ),
                "emoji": "⛔",
            }
        if rest_days == 1:
            return {
                "type": "insufficient_rest",
                "severity": "medium",
                "message": f"⚠️ Only {rest_days} rest day this week",
                "suggestion": (
                    "While 1 rest day is the minimum, 2-3 rest days per week is optimal "
                    "for most people. Consider adding another rest day to optimize recovery."
                ),
                "emoji": "😴",
            }
        if rest_days <= 3:
            return {
                "type": "good_rest",
                "severity": "none",
                "message": f"Perfect! {rest_days} rest days this week",
                "suggestion": (
                    "This is the optimal rest-to-training ratio for most people. "
                    "Great balance between training and recovery."
                ),
                "emoji": "💯",
            }
        return {
            "type": "high_rest",
            "severity": "low",
            "message": f"{rest_days} rest days this week",
            "suggestion": (
                "You have plenty of rest. If this is intentional (deload week, recovery), "
                "great! Otherwise, consider adding training days for optimal results."
            ),
            "emoji": "🔄",
        }

    def get_rest_advice(
        self, current_date: datetime.datetime | datetime.date | str | None = None
    ) -> dict:
        """Return weekly rest advice, metrics and an overall status."""
        now = self._now(current_date)
        advice: list[dict] = []
        warnings: list[dict] = []

        groups: dict[str, int] = {}
        workout_dates: set[datetime.date] = set()
        total_sessions = 0
        total_duration = 0.0
        vigorous_sessions = 0
        for session in self.sessions:
            days_ago = MathTools.fractional_days(session["date"], now)
            if 0 <= days_ago <= self.WINDOW_DAYS:
                group = session["muscle_group"]
                groups[group] = groups.get(group, 0) + 1
                workout_dates.add(session["date"].date())
                total_sessions += 1
                total_duration += session["duration"]
                if session["intensity"] in VIGOROUS:
                    vigorous_sessions += 1

        for group, frequency in groups.items():
            item = first_match(FREQUENCY_RULES, (group, frequency))
            if item is None:
                continue
            if item["severity"] in WARNING_SEVERITIES:
                warnings.append(item)
            else:
                advice.append(item)

        today = now.date()
        last_7_days = {today - datetime.timedelta(days=i) for i in range(self.WINDOW_DAYS)}
        rest_days = len(last_7_days - workout_dates)
        rest_item = self._rest_day_item(rest_days)
        if rest_item["severity"] in WARNING_SEVERITIES:
            warnings.append(rest_item)
        else:
            advice.append(rest_item)

        # multiple sessions per day are normal for split routines
        if (total_sessions > 10 and rest_days < 3) or total_sessions > 15:
            warnings.append(
                {
                    "type": "high_volume",
                    "severity": "high" if total_sessions > 15 else "medium",
                    "message": (
                        f"High training volume: {total_sessions} sessions across "
                        f"{len(workout_dates)} days this week"
                    ),
                    "suggestion": (
                        "You have very high volume with limited rest. Consider adding more rest days or reducing frequency."
                        if rest_days < 3
                        else "Monitor your recovery. Consider deload week if feeling fatigued."
                    ),
                    "emoji": "📊",
                }
            )

        vigorous_ratio = vigorous_sessions / total_sessions if total_sessions else 0
        if vigorous_ratio > 0.7 and total_sessions >= 4:
            warnings.append(
                {
                    "type": "high_intensity",
                    "severity": "medium",
                    "message": f"{MathTools.round_half_up(vigorous_ratio * 100)}% of your sessions were high intensity",
                    "suggestion": "Consider mixing in some moderate intensity sessions to aid recovery.",
                    "emoji": "🔥",
                }
            )

        severities = {w["severity"] for w in warnings}
        if "critical" in severities:
            status = "critical"
        elif "high" in severities:
            status = "warning"
        elif "medium" in severities:
            status = "caution"
        elif not advice and not warnings:
            status = "excellent"
        else:
            status = "good"

        all_advice = warnings + advice
        if not all_advice:
            all_advice.append(
                {
                    "type": "balanced",
                    "severity": "none",
                    "message": "🎉 Great job! Training and rest are perfectly balanced.",
                    "suggestion": "Keep up this routine for optimal results.",
                    "emoji": "⚖️",
                }
            )

        return {
            "advice": all_advice,
            "metrics": {
                "total_sessions": total_sessions,
                "rest_days": rest_days,
                "total_duration": total_duration,
                "vigorous_sessions": vigorous_sessions,
                "muscle_group_breakdown": groups,
                "average_session_duration": (
                    MathTools.round_half_up(total_duration / total_sessions) if total_sessions else 0
                ),
            },
            "status": status,
        }

    def should_rest_today(
        self, current_date: datetime.datetime | datetime.date | str | None = None
    ) -> dict:
        now = self._now(current_date)
        today = now.date()
        recent_days = {today - datetime.timedelta(days=1), today - datetime.timedelta(days=2)}
        recent = [s for s in self.sessions if s["date"].date() in recent_days]

        if len(recent) >= 2:
            vigorous_count = sum(1 for s in recent if s["intensity"] in VIGOROUS)
            if vigorous_count >= 2:
                return {
                    "recommended": True,
                    "reason": "You had 2 consecutive high-intensity sessions. Rest is recommended for optimal recovery.",
                    "emoji": "😴",
                }
            if len({s["muscle_group"] for s in recent}) == 1:
                return {
                    "recommended": True,
                    "reason": (
                        f"You trained {recent[0]['muscle_group']} 2 days in a row. "
                        "Consider resting or training a different muscle group."
                    ),
                    "emoji": "💪",
                }

        weekly = self.get_rest_advice(now)
        if weekly["status"] in ("critical", "warning"):
            return {
                "recommended": True,
                "reason": "Your training volume is high this week. A rest day would help with recovery.",
                "emoji": "⚠️",
            }
        return {
            "recommended": False,
            "reason": "You're good to train today! Listen to your body.",
            "emoji": "💪",
        }

    @staticmethod
    def score_advice(items: Iterable[dict]) -> float:
        """Return the 0-100 recovery score for a list of advice items."""
        score = 100
        for item in items:
            score -= SCORE_PENALTIES.get(item.get("severity"), 0)
            if item.get("type") == "optimal":
                score += OPTIMAL_BONUS
        return MathTools.clamp(score, 0, 100)

    @staticmethod
    def rate_score(score: float) -> dict:
        for floor, rating, emoji, suggestion in RATING_TIERS:
            if score >= floor:
                return {"rating": rating, "emoji": emoji, "advice": suggestion}
        raise ValueError(f"score out of range: {score}")

    def get_recovery_score(
        self, current_date: datetime.datetime | datetime.date | str | None = None
    ) -> dict:
        weekly = self.get_rest_advice(current_date)
        score = self.score_advice(weekly["advice"])
        return {"score": score, **self.rate_score(score), "metrics": weekly["metrics"]}

    def workout_dates_between(
        self,
        start: datetime.datetime | datetime.date | str,
        end: datetime.datetime | datetime.date | str,
    ) -> list[str]:
        """Return sorted unique ISO dates of sessions within [start, end]."""
        lo = MathTools.to_datetime(start)
        hi = MathTools.to_datetime(end)
        dates = {
            s["date"].date().isoformat() for s in self.sessions if lo <= s["date"] <= hi
        }
        return sorted(dates)
