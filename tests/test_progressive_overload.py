import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import ProgressiveOverloadEngine
from algorithms.progressive_overload import IMPROVEMENT_RULES
from algorithms.rules import first_match


def _weekly(start: str, weeks: int) -> list[datetime.datetime]:
    first = datetime.datetime.fromisoformat(start)
    return [first + datetime.timedelta(days=7 * i) for i in range(weeks)]


class ProgressiveOverloadTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = ProgressiveOverloadEngine()

    def test_history_sorted_and_volume_derived(self) -> None:
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-15")
        self.engine.log_session("Bench", 55, 10, 3, "2024-01-01")
        self.engine.log_session("Bench", 57.5, 9, 3, "2024-01-08")
        history = self.engine.history("Bench")
        dates = [h["date"] for h in history]
        self.assertEqual(dates, sorted(dates))
        for h in history:
            self.assertEqual(h["volume"], h["weight"] * h["reps"] * h["sets"])

    def test_same_date_keeps_insertion_order(self) -> None:
        self.engine.log_session("Bench", 60, 8, 1, "2024-01-01")
        self.engine.log_session("Bench", 62.5, 8, 1, "2024-01-01")
        self.assertEqual([h["weight"] for h in self.engine.history("Bench")], [60, 62.5])

    def test_history_returns_copies(self) -> None:
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-01")
        self.engine.history("Bench")[0]["weight"] = 999
        self.assertEqual(self.engine.history("Bench")[0]["weight"], 60)

    def test_info_with_fewer_than_two_logs(self) -> None:
        self.assertEqual(self.engine.suggest_increase("Bench")["type"], "info")
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-01")
        result = self.engine.suggest_increase("Bench")
        self.assertEqual(result["type"], "info")
        self.assertIn("Keep logging", result["message"])

    def test_weight_progress_message(self) -> None:
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-01")
        self.engine.log_session("Bench", 65, 8, 3, "2024-01-08")
        result = self.engine.suggest_increase("Bench")
        self.assertEqual(result["type"], "progress")
        self.assertIn("8.3%", result["message"])

    def test_weight_beats_reps(self) -> None:
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-01")
        self.engine.log_session("Bench", 65, 10, 3, "2024-01-08")
        result = self.engine.suggest_increase("Bench")
        self.assertEqual(result["dimension"], "weight")
        self.assertNotIn("more rep", result["message"])

    def test_rep_progress_pluralises(self) -> None:
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-01")
        self.engine.log_session("Bench", 60, 9, 3, "2024-01-08")
        self.assertEqual(
            self.engine.suggest_increase("Bench")["message"],
            "Progress! You did 1 more rep",
        )
        self.engine.log_session("Bench", 60, 11, 3, "2024-01-15")
        self.assertEqual(
            self.engine.suggest_increase("Bench")["message"],
            "Progress! You did 2 more reps",
        )

    def test_sets_then_volume(self) -> None:
        self.engine.log_session("Row", 50, 8, 3, "2024-01-01")
        self.engine.log_session("Row", 50, 8, 4, "2024-01-08")
        self.assertEqual(self.engine.suggest_increase("Row")["dimension"], "sets")

    def test_improvement_rules_order(self) -> None:
        self.assertEqual(
            [r.name for r in IMPROVEMENT_RULES], ["weight", "reps", "sets", "volume"]
        )
        last = {"weight": 50, "reps": 6, "sets": 3, "volume": 900}
        prev = {"weight": 50, "reps": 6, "sets": 3, "volume": 800}
        self.assertEqual(first_match(IMPROVEMENT_RULES, (last, prev))["dimension"], "volume")

    def test_stagnation_after_six_identical(self) -> None:
        for d in _weekly("2024-01-01", 6):
            self.engine.log_session("Bench", 60, 8, 3, d)
        result = self.engine.suggest_increase("Bench")
        self.assertEqual(result["type"], "stagnation")
        self.assertEqual(result["severity"], "high")
        self.assertIn("1️⃣", result["suggestion"])
        self.assertEqual(len(self.engine.get_stagnant_exercises()), 1)
        self.assertEqual(self.engine.get_stagnant_exercises()[0]["exercise"], "Bench")

    def test_consistency_and_consistent(self) -> None:
        for d in _weekly("2024-01-01", 4):
            self.engine.log_session("Bench", 60, 8, 3, d)
        self.assertEqual(self.engine.suggest_increase("Bench")["type"], "consistency")

        self.engine.log_session("Squat", 100, 5, 3, "2024-01-01")
        self.engine.log_session("Squat", 100, 5, 3, "2024-01-08")
        self.assertEqual(self.engine.suggest_increase("Squat")["type"], "consistent")
        self.assertEqual(self.engine.get_stagnant_exercises(), [])

    def test_regression_is_not_progress(self) -> None:
        self.engine.log_session("Bench", 65, 8, 3, "2024-01-01")
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-08")
        self.assertEqual(self.engine.suggest_increase("Bench")["type"], "consistent")

    def test_progression_suggestion(self) -> None:
        heavy = self.engine.get_progression_suggestion({"weight": 60, "reps": 8, "sets": 3})
        lines = heavy.split("\n")
        self.assertEqual(len(lines), 7)
        self.assertIn("62.5-65.0kg", lines[0])
        self.assertIn("9-10 reps", lines[1])
        self.assertIn("total: 4 sets", lines[2])
        self.assertIn("Rest Optimization", lines[4])

        light = self.engine.get_progression_suggestion({"weight": 2, "reps": 15, "sets": 5})
        self.assertIn("0.5-1kg", light)
        self.assertIn("12+ reps", light)
        self.assertIn("Time Under Tension", light)
        self.assertIn("5 sets is plenty", light)

    def test_progress_summary(self) -> None:
        self.assertIsNone(self.engine.get_progress_summary("Bench"))
        self.engine.log_session("Bench", 60, 8, 3, "2024-01-01")
        self.engine.log_session("Bench", 66, 8, 3, "2024-01-31")
        summary = self.engine.get_progress_summary("Bench")
        self.assertEqual(summary["total_sessions"], 2)
        self.assertEqual(summary["weight_progress"], 6)
        self.assertEqual(summary["weight_progress_percent"], "10.0")
        self.assertEqual(summary["volume_progress_percent"], "10.0")
        self.assertEqual(summary["days_tracking"], 30)

    def test_personal_records(self) -> None:
        self.assertIsNone(self.engine.get_personal_records("Bench"))
        self.engine.log_session("Bench", 60, 12, 3, "2024-01-01")
        self.engine.log_session("Bench", 80, 5, 3, "2024-01-08")
        self.engine.log_session("Bench", 80, 4, 3, "2024-01-15")
        records = self.engine.get_personal_records("Bench")
        self.assertEqual(records["max_weight"]["value"], 80)
        self.assertEqual(records["max_weight"]["reps"], 5)
        self.assertEqual(records["max_reps"]["value"], 12)
        self.assertEqual(records["max_volume"]["value"], 2160)

    def test_pr_detection(self) -> None:
        first = self.engine.check_for_pr("Bench", {"weight": 60, "reps": 8, "sets": 1})
        self.assertEqual(first["type"], "first")

        self.engine.log_session("Bench", 60, 10, 3, "2024-01-01")
        prs = self.engine.check_for_pr("Bench", {"weight": 65, "reps": 5, "sets": 1})
        self.assertEqual([p["type"] for p in prs], ["weight"])
        self.assertIn("65kg", prs[0]["message"])

        self.assertIsNone(
            self.engine.check_for_pr("Bench", {"weight": 50, "reps": 5, "sets": 1})
        )

    def test_load_history_replaces_state(self) -> None:
        self.engine.log_session("Old", 10, 10, 1, "2023-01-01")
        rows = [
            {"exercise": "Bench", "weight": 60, "reps": 8, "sets": 1, "date": "2024-01-02"},
            {"exercise": "Bench", "weight": 62.5, "reps": 8, "sets": 1, "date": "2024-01-01"},
        ]
        self.engine.load_history(rows)
        self.engine.load_history(rows)
        self.assertEqual(self.engine.exercises(), ["Bench"])
        self.assertEqual([h["weight"] for h in self.engine.history("Bench")], [62.5, 60])


if __name__ == "__main__":
    unittest.main()
