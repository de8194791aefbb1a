"""
Central data model definitions used across the project.

This module defines the canonical structure of professor records, course
aggregates and planning results so that:
- scraping, merging, fallback and scheduling all share the same field names
- the JSON shape returned to callers is produced in exactly one place
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Source(str, Enum):
    """Where a professor record came from."""

    COURSE_EVAL = "CourseEval"
    RATINGS_SITE = "RatingsSite"
    WEB_SEARCH_FALLBACK = "WebSearchFallback"


@dataclass
class ProfessorRecord:
    """
    One professor teaching one course, as seen by one source.

    avg_gpa of None (or 0.0) means "unknown".
    """

    name: str
    course: str
    source: Source
    avg_gpa: Optional[float] = None
    rating: Optional[float] = None
    difficulty: Optional[float] = None
    would_take_again: Optional[float] = None
    num_ratings: Optional[int] = None
    department: Optional[str] = None
    url: Optional[str] = None
    teaches_class: Optional[bool] = None

    @property
    def has_gpa(self) -> bool:
        return self.avg_gpa is not None and self.avg_gpa > 0

    @property
    def has_rating(self) -> bool:
        return self.rating is not None

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON shape used by the request layer (camelCase, optional keys omitted).
        """
        out: Dict[str, Any] = {
            "name": self.name,
            "avgGPA": self.avg_gpa if self.has_gpa else 0,
            "course": self.course,
            "source": self.source.value,
        }
        optional = {
            "rating": self.rating,
            "difficulty": self.difficulty,
            "wouldTakeAgain": self.would_take_again,
            "numRatings": self.num_ratings,
            "department": self.department,
            "url": self.url,
            "teachesClass": self.teaches_class,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out


# ---------------------------------------------------------------------------
# Comprehensive (full catalog) scrape
# ---------------------------------------------------------------------------


@dataclass
class SectionData:
    semester: str
    year: str
    gpa: float
    students: int
    section: str = "A"


@dataclass
class ProfessorAggregate:
    """
    A professor's history for one course, built from their detail page.
    """

    name: str
    avg_gpa: float
    sections: List[SectionData]
    total_students: int
    url: str


@dataclass
class CourseAggregate:
    """
    Represents one course of the catalog scrape.

    average_gpa is the student-weighted mean over all sections of all
    professors, not the mean of the professors' GPAs.
    """

    course_code: str
    course_name: str
    department: str
    professors: List[ProfessorAggregate]
    average_gpa: float
    total_sections: int
    url: str

    @property
    def total_students(self) -> int:
        return sum(p.total_students for p in self.professors)


@dataclass
class ComprehensiveData:
    university: str
    last_updated: str
    departments: List[str]
    courses: List[CourseAggregate]
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_courses(self) -> int:
        return len(self.courses)

    @property
    def total_professors(self) -> int:
        return sum(len(c.professors) for c in self.courses)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


@dataclass
class SemesterTerm:
    term: str
    year: int

    def __str__(self) -> str:
        return f"{self.term} {self.year}"


@dataclass
class GraduationPlan:
    current_year: str
    semesters_remaining: int
    expected_graduation_year: int
    semester_plan: List[SemesterTerm]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentYear": self.current_year,
            "semestersRemaining": self.semesters_remaining,
            "expectedGraduationYear": self.expected_graduation_year,
            "semesterPlan": [{"term": t.term, "year": t.year} for t in self.semester_plan],
        }


# ---------------------------------------------------------------------------
# Fallback, search and LLM results
# ---------------------------------------------------------------------------


@dataclass
class ValidationResult:
    is_valid: bool
    records: List[ProfessorRecord] = field(default_factory=list)
    message: str = ""
    enhanced: bool = False


@dataclass
class SearchResult:
    name: str
    snippet: str
    url: str


@dataclass
class Citation:
    title: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "url": self.url}


@dataclass
class LLMReply:
    text: str
    citations: List[Citation] = field(default_factory=list)
    used_web_search: bool = False


@dataclass
class ScheduleResult:
    response: str
    citations: List[Citation]
    used_web_search: bool
    scraped_data: Dict[str, List[ProfessorRecord]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "citations": [c.to_dict() for c in self.citations],
            "usedWebSearch": self.used_web_search,
            "scrapedData": {
                course: [r.to_dict() for r in records] for course, records in self.scraped_data.items()
            },
        }
