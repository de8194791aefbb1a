"""
Unit tests for the semester calendar and graduation plan.

The date is always passed in, so results do not depend on when tests run.
"""

import unittest
from datetime import date

from gpaplanner.planning import calculate_graduation_plan, generate_semester_sequence, semester_terms


class TestSemesterSequence(unittest.TestCase):
    def test_from_august_starts_with_next_spring(self) -> None:
        seq = generate_semester_sequence(4, today=date(2026, 10, 19))
        self.assertEqual(seq, ["SPRING 2027", "FALL 2027", "SPRING 2028", "FALL 2028"])

    def test_before_august_starts_with_fall(self) -> None:
        seq = generate_semester_sequence(3, today=date(2026, 3, 1))
        self.assertEqual(seq, ["FALL 2026", "SPRING 2027", "FALL 2027"])

    def test_august_first_counts_as_fall(self) -> None:
        self.assertEqual(generate_semester_sequence(1, today=date(2026, 8, 1)), ["SPRING 2027"])
        self.assertEqual(generate_semester_sequence(1, today=date(2026, 7, 31)), ["FALL 2026"])

    def test_summer_only_when_requested(self) -> None:
        seq = generate_semester_sequence(4, include_summer=True, today=date(2026, 3, 1))
        self.assertEqual(seq, ["FALL 2026", "SPRING 2027", "SUMMER 2027", "FALL 2027"])
        self.assertNotIn("SUMMER", " ".join(generate_semester_sequence(8, today=date(2026, 3, 1))))

    def test_default_length(self) -> None:
        self.assertEqual(len(generate_semester_sequence(today=date(2026, 3, 1))), 8)

    def test_terms_keep_year_as_int(self) -> None:
        term = semester_terms(1, today=date(2026, 10, 19))[0]
        self.assertEqual((term.term, term.year), ("SPRING", 2027))


class TestGraduationPlan(unittest.TestCase):
    def test_sophomore_in_fall(self) -> None:
        plan = calculate_graduation_plan("sophomore", today=date(2026, 10, 19))

        self.assertEqual(plan.current_year, "sophomore")
        self.assertEqual(plan.semesters_remaining, 6)
        self.assertEqual(plan.expected_graduation_year, 2029)
        self.assertEqual(len(plan.semester_plan), 6)
        self.assertEqual(str(plan.semester_plan[0]), "SPRING 2027")

    def test_senior_in_spring(self) -> None:
        plan = calculate_graduation_plan("Senior", today=date(2026, 3, 1))

        self.assertEqual(plan.semesters_remaining, 1)
        self.assertEqual(plan.expected_graduation_year, 2027)
        self.assertEqual([str(t) for t in plan.semester_plan], ["FALL 2026"])

    def test_unknown_year_is_freshman(self) -> None:
        plan = calculate_graduation_plan("grad student", today=date(2026, 10, 19))
        self.assertEqual(plan.current_year, "freshman")
        self.assertEqual(plan.semesters_remaining, 8)

    def test_with_summers(self) -> None:
        plan = calculate_graduation_plan("junior", today=date(2026, 10, 19), include_summer=True)
        self.assertEqual(plan.semesters_remaining, 6)
        self.assertEqual(plan.expected_graduation_year, 2028)
        self.assertIn("SUMMER", [t.term for t in plan.semester_plan])

    def test_to_dict_shape(self) -> None:
        data = calculate_graduation_plan("junior", today=date(2026, 10, 19)).to_dict()
        self.assertEqual(
            set(data), {"currentYear", "semestersRemaining", "expectedGraduationYear", "semesterPlan"}
        )
        self.assertEqual(data["semesterPlan"][0], {"term": "SPRING", "year": 2027})


if __name__ == "__main__":
    unittest.main()
