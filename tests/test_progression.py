import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import HistoryEntry, MathTools, ProgressionEngine, SuggestedSet


def _day(offset: int) -> datetime.datetime:
    return datetime.datetime(2024, 6, 20) - datetime.timedelta(days=offset)


class ProgressionEngineTest(unittest.TestCase):
    def test_default_ramp_for_empty_history(self) -> None:
        result = ProgressionEngine.suggest_next_sets([])
        self.assertEqual(
            result.to_dict(),
            {
                "sets": [
                    {"reps": 10, "weight": 20.0},
                    {"reps": 9, "weight": 22.5},
                    {"reps": 8, "weight": 25.0},
                ]
            },
        )

    def test_uses_three_most_recent_entries(self) -> None:
        history = [
            HistoryEntry(12, 40.0, _day(10)),
            HistoryEntry(10, 45.0, _day(3)),
            HistoryEntry(8, 50.0, _day(1)),
            HistoryEntry(9, 47.5, _day(2)),
        ]
        result = ProgressionEngine.suggest_next_sets(history)
        self.assertEqual(
            list(result.sets),
            [SuggestedSet(10, 47.5), SuggestedSet(9, 48.75), SuggestedSet(8, 50.0)],
        )

    def test_reps_are_rounded_up_and_floored(self) -> None:
        history = [
            HistoryEntry(5, 60.0, _day(1)),
            HistoryEntry(5, 60.0, _day(2)),
            HistoryEntry(6, 60.0, _day(3)),
        ]
        sets = ProgressionEngine.suggest_next_sets(history).sets
        self.assertEqual(sets[0].reps, 7)
        self.assertEqual(sets[1].reps, 6)
        self.assertEqual(sets[2].reps, 6)

    def test_missing_weight_counts_as_zero(self) -> None:
        history = [
            HistoryEntry(10, None, _day(1)),
            HistoryEntry(10, 30.0, _day(2)),
        ]
        sets = ProgressionEngine.suggest_next_sets(history).sets
        self.assertAlmostEqual(sets[0].weight, 15.0)
        self.assertAlmostEqual(sets[2].weight, 17.5)

    def test_single_entry(self) -> None:
        sets = ProgressionEngine.suggest_next_sets([HistoryEntry(8, 100.0, _day(0))]).sets
        self.assertEqual(
            [(s.reps, s.weight) for s in sets], [(9, 100.0), (8, 101.25), (7, 102.5)]
        )

    def test_ties_keep_input_order(self) -> None:
        same = _day(1)
        history = [
            HistoryEntry(10, 10.0, same),
            HistoryEntry(10, 20.0, same),
            HistoryEntry(10, 30.0, same),
            HistoryEntry(10, 1000.0, same),
        ]
        recent = ProgressionEngine.most_recent(history)
        self.assertEqual([e.weight for e in recent], [10.0, 20.0, 30.0])
        self.assertEqual(ProgressionEngine.suggest_next_sets(history).sets[0].weight, 20.0)

    def test_always_three_sets_with_monotonic_weights(self) -> None:
        for n in range(0, 7):
            history = [HistoryEntry(6 + i, 20.0 + i, _day(i)) for i in range(n)]
            sets = ProgressionEngine.suggest_next_sets(history).sets
            self.assertEqual(len(sets), 3)
            self.assertLessEqual(sets[0].weight, sets[1].weight)
            self.assertLessEqual(sets[1].weight, sets[2].weight)
            self.assertTrue(all(s.reps >= 6 for s in sets))


class MathToolsTest(unittest.TestCase):
    def test_set_volume_and_mean(self) -> None:
        self.assertEqual(MathTools.set_volume(5, None), 0.0)
        self.assertEqual(MathTools.mean([]), 0.0)
        self.assertEqual(MathTools.ceil_mean([8, 9]), 9)


if __name__ == "__main__":
    unittest.main()
