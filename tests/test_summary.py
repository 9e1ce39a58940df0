from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from SCM.scm_api import run_matching
from SCM.scm_domain import MatchResult, School, Student
from SCM.scm_metrics import compute_extended_metrics, find_blocking_pairs, summarize_results
from SCM.scm_strategy import apply_safety_first_strategy


class TestSummarizeResults(unittest.TestCase):
    def test_fixture_baseline_summary(self) -> None:
        students = [
            Student(id=1, score=90, preferences=(1, 2)),
            Student(id=2, score=80, preferences=(1, 2)),
            Student(id=3, score=70, preferences=(2, 1)),
        ]
        schools = [School(id=1, capacity=1), School(id=2, capacity=2)]
        summary = run_matching("baseline", students, schools).summary

        self.assertEqual(summary.total_students, 3)
        self.assertEqual(summary.matched_students, 3)
        self.assertEqual(summary.unmatched_count, 0)
        self.assertAlmostEqual(summary.match_rate, 100.0, places=9)
        self.assertEqual(summary.preference_stats, (2, 1, 0, 0, 0))
        self.assertAlmostEqual(summary.preference_rates[0], 200.0 / 3.0, places=9)
        self.assertAlmostEqual(summary.preference_rates[1], 100.0 / 3.0, places=9)
        self.assertAlmostEqual(summary.first_choice_rate, summary.preference_rates[0], places=9)

    def test_empty_input_is_zero_valued(self) -> None:
        for algorithm in ("baseline", "da"):
            outcome = run_matching(algorithm, [], [])
            self.assertEqual(outcome.results, [])
            self.assertEqual(outcome.trace, [])
            summary = outcome.summary
            self.assertEqual(summary.total_students, 0)
            self.assertEqual(summary.match_rate, 0.0)
            self.assertEqual(summary.preference_stats, (0, 0, 0, 0, 0))
            self.assertEqual(summary.preference_rates, (0.0, 0.0, 0.0, 0.0, 0.0))
            self.assertEqual(summary.first_choice_rate, 0.0)

    def test_students_without_schools_are_all_unmatched(self) -> None:
        students = [
            Student(id=1, score=90, preferences=(1, 2)),
            Student(id=2, score=80, preferences=()),
        ]
        expected_reason = {"baseline": "capacity full", "da": "no school data"}
        for algorithm in ("baseline", "da"):
            outcome = run_matching(algorithm, students, [], sanity_checks=True)
            self.assertEqual({r.student_id: r.school_id for r in outcome.results}, {1: None, 2: None})
            self.assertEqual(
                [(s.student_id, s.school_id, s.action) for s in outcome.trace],
                [(1, 1, "propose"), (1, 1, "reject"), (1, 2, "propose"), (1, 2, "reject")],
            )
            rejects = {s.reason for s in outcome.trace if s.action == "reject"}
            self.assertEqual(rejects, {expected_reason[algorithm]})
            self.assertEqual(outcome.summary.total_students, 2)
            self.assertEqual(outcome.summary.unmatched_count, 2)
            self.assertEqual(outcome.summary.match_rate, 0.0)

        strategic = {s.id: s for s in apply_safety_first_strategy(students, [])}
        self.assertEqual(strategic[1].preferences, (2,))
        self.assertEqual(strategic[2].preferences, ())

    def test_stats_padded_to_longest_list(self) -> None:
        students = [Student(id=1, score=50, preferences=(1, 2, 3, 4, 5, 6, 7))]
        results = [MatchResult(student_id=1, school_id=7)]
        summary = summarize_results(results, students)
        self.assertEqual(len(summary.preference_stats), 7)
        self.assertEqual(summary.preference_stats[6], 1)
        self.assertAlmostEqual(summary.preference_rates[6], 100.0, places=9)
        self.assertEqual(summary.first_choice_rate, 0.0)

    def test_ranks_use_given_students(self) -> None:
        original = [Student(id=1, score=50, preferences=(1, 2))]
        truncated = [Student(id=1, score=50, preferences=(2,))]
        results = [MatchResult(student_id=1, school_id=2)]
        self.assertEqual(summarize_results(results, original).preference_stats[:2], (0, 1))
        self.assertEqual(summarize_results(results, truncated).preference_stats[:2], (1, 0))

    def test_rank_students_override(self) -> None:
        original = [Student(id=1, score=50, preferences=(1, 2))]
        truncated = [Student(id=1, score=50, preferences=(2,))]
        schools = [School(id=1, capacity=1), School(id=2, capacity=1)]
        outcome = run_matching("baseline", truncated, schools, rank_students=original)
        self.assertEqual(outcome.summary.preference_stats[:2], (0, 1))

    def test_unmatched_counted(self) -> None:
        students = [
            Student(id=1, score=50, preferences=(1,)),
            Student(id=2, score=40, preferences=(1,)),
        ]
        results = [MatchResult(student_id=1, school_id=1), MatchResult(student_id=2, school_id=None)]
        summary = summarize_results(results, students)
        self.assertEqual(summary.unmatched_count, 1)
        self.assertAlmostEqual(summary.match_rate, 50.0, places=9)

    def test_unknown_algorithm_rejected(self) -> None:
        with self.assertRaises(ValueError):
            run_matching("boston", [], [])


class TestBlockingPairs(unittest.TestCase):
    def test_spare_seat_blocks(self) -> None:
        students = [Student(id=1, score=10, preferences=(1,))]
        results = [MatchResult(student_id=1, school_id=None)]
        self.assertEqual(find_blocking_pairs(results, students, [School(id=1, capacity=1)]), [(1, 1)])

    def test_priority_blocks(self) -> None:
        students = [
            Student(id=2, score=80, preferences=(1, 2)),
            Student(id=3, score=70, preferences=(1,)),
        ]
        results = [MatchResult(student_id=2, school_id=2), MatchResult(student_id=3, school_id=1)]
        schools = [School(id=1, capacity=1), School(id=2, capacity=1)]
        self.assertEqual(find_blocking_pairs(results, students, schools), [(2, 1)])

    def test_zero_capacity_and_unknown_never_block(self) -> None:
        students = [Student(id=1, score=10, preferences=(1, 99))]
        results = [MatchResult(student_id=1, school_id=None)]
        self.assertEqual(find_blocking_pairs(results, students, [School(id=1, capacity=0)]), [])


class TestExtendedMetrics(unittest.TestCase):
    def test_fixture_da_metrics(self) -> None:
        students = [
            Student(id=1, score=90, preferences=(1, 2)),
            Student(id=2, score=80, preferences=(1, 2)),
            Student(id=3, score=70, preferences=(2, 1)),
        ]
        schools = [School(id=1, capacity=1), School(id=2, capacity=2)]
        outcome = run_matching("da", students, schools)
        values = compute_extended_metrics(outcome, students, schools).values

        self.assertAlmostEqual(values["match_rate"], 100.0, places=9)
        self.assertAlmostEqual(values["top3_rate"], 100.0, places=9)
        self.assertAlmostEqual(values["avg_matched_rank"], 4.0 / 3.0, places=9)
        self.assertEqual(values["median_matched_rank"], 1.0)
        self.assertEqual(values["seats_total"], 3.0)
        self.assertEqual(values["seats_filled"], 3.0)
        self.assertAlmostEqual(values["seat_fill_rate"], 100.0, places=9)
        self.assertEqual(values["schools_full"], 2.0)
        self.assertEqual(values["blocking_pairs"], 0.0)
        self.assertEqual(values["rounds"], 2.0)
        self.assertEqual(values["proposals"], 4.0)
        self.assertEqual(values["rejections"], 1.0)
        self.assertAlmostEqual(values["gini_rank_utility"], 1.0 / 3.0, places=9)


if __name__ == "__main__":
    unittest.main()
