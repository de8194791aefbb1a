"""
Queries over a comprehensive catalog scrape (ComprehensiveData).

Used to answer "what are the easiest courses" style questions from the
scraped aggregates without going back to the site.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from gpaplanner.model import ComprehensiveData, CourseAggregate, ProfessorAggregate


ELECTIVE_KEYWORDS = ("intro", "survey", "appreciation", "topics", "special", "seminar")
CORE_KEYWORDS = ("calculus", "physics", "chemistry", "differential", "linear algebra")

# without an elective keyword, a non-core course must beat this to count as an easy elective
ELECTIVE_MIN_GPA = 3.5


@dataclass
class CourseRecommendation:
    course_code: str
    course_name: str
    average_gpa: float
    best_professor: str
    professor_gpa: float
    difficulty: str
    popularity: int
    department: str


def difficulty_label(gpa: float) -> str:
    if gpa >= 3.7:
        return "Easy"
    if gpa >= 3.3:
        return "Medium"
    return "Hard"


def _best_professor(course: CourseAggregate) -> Optional[ProfessorAggregate]:
    if not course.professors:
        return None
    return max(course.professors, key=lambda p: p.avg_gpa)


def recommend(course: CourseAggregate) -> CourseRecommendation:
    best = _best_professor(course)
    return CourseRecommendation(
        course_code=course.course_code,
        course_name=course.course_name,
        average_gpa=course.average_gpa,
        best_professor=best.name if best else "Unknown",
        professor_gpa=best.avg_gpa if best else 0.0,
        difficulty=difficulty_label(course.average_gpa),
        popularity=course.total_students,
        department=course.department,
    )


def _by_gpa(courses: List[CourseAggregate]) -> List[CourseAggregate]:
    return sorted(courses, key=lambda c: (-c.average_gpa, c.course_code))


def best_courses_by_department(data: ComprehensiveData, department: str, limit: int = 10) -> List[CourseRecommendation]:
    dept = department.strip().upper()
    courses = [c for c in data.courses if c.department == dept]
    return [recommend(c) for c in _by_gpa(courses)[:limit]]


def is_likely_elective(course: CourseAggregate) -> bool:
    name = course.course_name.lower()
    if any(k in name for k in ELECTIVE_KEYWORDS):
        return True
    if any(k in name for k in CORE_KEYWORDS):
        return False
    return course.average_gpa > ELECTIVE_MIN_GPA


def easiest_electives(data: ComprehensiveData, limit: int = 20) -> List[CourseRecommendation]:
    courses = [c for c in data.courses if is_likely_elective(c)]
    return [recommend(c) for c in _by_gpa(courses)[:limit]]


def courses_in_gpa_range(data: ComprehensiveData, min_gpa: float, max_gpa: float = 4.0) -> List[CourseRecommendation]:
    courses = [c for c in data.courses if min_gpa <= c.average_gpa <= max_gpa]
    return [recommend(c) for c in _by_gpa(courses)]


def search_courses(data: ComprehensiveData, query: str) -> List[CourseRecommendation]:
    """
    Substring match on course code or name (case-insensitive), best GPA first.
    """
    q = query.strip().lower()
    if not q:
        return []
    courses = [c for c in data.courses if q in c.course_code.lower() or q in c.course_name.lower()]
    return [recommend(c) for c in _by_gpa(courses)]


def department_stats(data: ComprehensiveData) -> Dict[str, Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    for dept in data.departments:
        courses = [c for c in data.courses if c.department == dept]
        if not courses:
            continue
        gpas = [c.average_gpa for c in courses]
        highest = max(courses, key=lambda c: c.average_gpa)
        lowest = min(courses, key=lambda c: c.average_gpa)
        stats[dept] = {
            "total_courses": len(courses),
            "average_gpa": sum(gpas) / len(gpas),
            "max_gpa": highest.average_gpa,
            "min_gpa": lowest.average_gpa,
            "highest_gpa_course": highest.course_code,
            "lowest_gpa_course": lowest.course_code,
        }
    return stats


# ---------------------------------------------------------------------------
# Major plan
# ---------------------------------------------------------------------------

STRATEGY_TIPS = (
    "Focus on the highest GPA electives to boost overall GPA",
    "Choose professors with the highest average GPAs",
    "Consider course difficulty and workload balance",
)


@dataclass
class MajorRecommendation:
    required: List[CourseRecommendation]
    electives: List[CourseRecommendation]
    analysis: str


def _mean_gpa(recs: List[CourseRecommendation]) -> float:
    return sum(r.average_gpa for r in recs) / len(recs) if recs else 0.0


def _find_course(data: ComprehensiveData, code: str) -> Optional[CourseRecommendation]:
    matches = search_courses(data, code)
    if not matches:
        return None
    wanted = code.strip().upper()
    exact = [m for m in matches if m.course_code.upper() == wanted]
    return (exact or matches)[0]


def optimal_recommendations(
    data: ComprehensiveData,
    major: str,
    required: List[str],
    elective_count: int = 5,
) -> MajorRecommendation:
    """
    Required courses as found in the catalog plus the easiest electives,
    with a short text summary of the GPAs to expect.

    Required codes missing from the catalog are left out. The overall
    expected GPA is the mean of the required and the elective averages.
    """
    found = [_find_course(data, code) for code in required]
    required_recs = [r for r in found if r is not None]
    electives = easiest_electives(data, elective_count) if elective_count > 0 else []

    required_avg = _mean_gpa(required_recs)
    elective_avg = _mean_gpa(electives)
    lines = [
        f"Analysis for {major} Major:",
        "",
        f"Required Courses Average GPA: {required_avg:.2f}",
        f"Recommended Electives Average GPA: {elective_avg:.2f}",
        f"Overall Expected GPA: {(required_avg + elective_avg) / 2:.2f}",
        "",
        "Strategy:",
    ]
    lines.extend(f"- {tip}" for tip in STRATEGY_TIPS)
    return MajorRecommendation(required=required_recs, electives=electives, analysis="\n".join(lines))
