"""
Semester calendar and graduation timeline.

Both functions are pure: they only depend on the date passed in
(today defaults to the current date).
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional

from gpaplanner.model import GraduationPlan, SemesterTerm


FALL = "FALL"
SPRING = "SPRING"
SUMMER = "SUMMER"

# Fall semester runs August-December.
FALL_START_MONTH = 8

STUDENT_YEARS = ("freshman", "sophomore", "junior", "senior")


def _is_fall(today: date) -> bool:
    return today.month >= FALL_START_MONTH


def semester_terms(num_semesters: int, include_summer: bool = False, today: Optional[date] = None) -> List[SemesterTerm]:
    """
    Upcoming terms, starting with the next one that has not begun yet.

    Before August that is FALL of this year, from August on SPRING of next year.
    """
    today = today or date.today()
    if _is_fall(today):
        term, year = SPRING, today.year + 1
    else:
        term, year = FALL, today.year

    out: List[SemesterTerm] = []
    while len(out) < num_semesters:
        out.append(SemesterTerm(term=term, year=year))
        if term == FALL:
            term, year = SPRING, year + 1
        elif term == SPRING:
            term = SUMMER if include_summer else FALL
        else:
            term = FALL
    return out


def generate_semester_sequence(
    num_semesters: int = 8,
    include_summer: bool = False,
    today: Optional[date] = None,
) -> List[str]:
    """
    Return labels like ['SPRING 2027', 'FALL 2027', ...].
    """
    return [str(t) for t in semester_terms(num_semesters, include_summer, today)]


def calculate_graduation_plan(
    current_year: str,
    today: Optional[date] = None,
    include_summer: bool = False,
) -> GraduationPlan:
    """
    Estimate how many semesters a student has left in a four-year program.

    A regular program has 8 semesters (12 with summer terms). At the start
    of fall a sophomore has completed 2 semesters, in spring 3, and so on.
    Unknown student years are treated as freshman.
    """
    today = today or date.today()
    year_name = (current_year or "").strip().lower()
    if year_name not in STUDENT_YEARS:
        year_name = "freshman"

    terms_per_year = 3 if include_summer else 2
    total_semesters = 4 * terms_per_year

    completed = STUDENT_YEARS.index(year_name) * terms_per_year
    if not _is_fall(today):
        completed += 1

    remaining = max(0, total_semesters - completed)
    expected = today.year + math.ceil(remaining / terms_per_year)

    return GraduationPlan(
        current_year=year_name,
        semesters_remaining=remaining,
        expected_graduation_year=expected,
        semester_plan=semester_terms(remaining, include_summer, today),
    )
