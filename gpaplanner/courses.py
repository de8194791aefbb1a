"""
Text helpers for course codes, GPA values and professor names.

Everything here is pure string handling: scraped page text and free-form
user prompts go in, normalized values come out.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlparse

from gpaplanner.errors import InvalidCourseCodeError
from gpaplanner.model import ProfessorRecord


# ---------------------------------------------------------------------------
# Course codes
# ---------------------------------------------------------------------------

# "CS 1301", "cs1301", "MATH 2551"
COURSE_CODE_RE = re.compile(r"\b([A-Za-z]{2,4})\s*-?\s*(\d{4})\b")

# Lowercase words that precede a 4-digit number in normal prose
# ("fall 2025", "in 2026") and must not be read as department codes.
NON_DEPARTMENT_WORDS = {
    "FALL", "SPRING", "SUMMER", "WINTER", "TERM", "YEAR", "CLASS",
    "IN", "OF", "BY", "TO", "FOR", "FROM", "THE", "AND", "OR", "SINCE", "UNTIL",
}


def _match_to_code(match: re.Match[str]) -> Optional[str]:
    dept, number = match.group(1), match.group(2)
    # an all-uppercase department is always taken as written
    if not dept.isupper() and dept.upper() in NON_DEPARTMENT_WORDS:
        return None
    return f"{dept.upper()} {number}"


def extract_course_codes(text: str) -> List[str]:
    """
    Return all course codes in text, normalized to 'DEPT NNNN'.

    Case-insensitive, de-duplicated, in order of first appearance.
    """
    out: List[str] = []
    seen = set()
    for m in COURSE_CODE_RE.finditer(text or ""):
        code = _match_to_code(m)
        if code and code not in seen:
            seen.add(code)
            out.append(code)
    return out


def extract_course_code(text: str) -> Optional[str]:
    codes = extract_course_codes(text)
    return codes[0] if codes else None


def normalize_course_code(text: str) -> str:
    """
    Normalize a course string like 'cs1301' or 'CS 1301: Intro' to 'CS 1301'.

    Raises InvalidCourseCodeError if no course code is present.
    """
    code = extract_course_code(text)
    if code is None:
        raise InvalidCourseCodeError(f"No course code found in {text!r}")
    return code


def department_of(course_code: str) -> str:
    return course_code.split(" ", 1)[0]


# ---------------------------------------------------------------------------
# GPA values
# ---------------------------------------------------------------------------

GPA_RE = re.compile(r"(?<![\d.])(\d+\.\d{1,2})(?![\d])")

GPA_MIN = 0.0
GPA_MAX = 4.0


def is_valid_gpa(value: Optional[float]) -> bool:
    return value is not None and GPA_MIN <= value <= GPA_MAX


def parse_gpa(text: Optional[str]) -> Optional[float]:
    """
    Return the first decimal token of text that lies within [0.0, 4.0].

    Tokens outside the range (percentages, ratings of 4.5, years) are skipped.
    """
    if not text:
        return None
    for m in GPA_RE.finditer(text):
        value = float(m.group(1))
        if is_valid_gpa(value):
            return value
    return None


# ---------------------------------------------------------------------------
# Professor names
# ---------------------------------------------------------------------------


def normalize_name(name: str) -> str:
    """Lowercase, trimmed, inner whitespace collapsed (merge key)."""
    return " ".join((name or "").split()).lower()


def clean_name(name: Optional[str]) -> str:
    return " ".join((name or "").split())


def decode_professor_id(href: Optional[str]) -> Optional[str]:
    """
    Decode the professor name embedded in links like '/prof?profID=Smith%2C%20John'.
    """
    if not href:
        return None
    query = urlparse(href).query
    values = parse_qs(query).get("profID")
    if values:
        name = clean_name(values[0])
        return name or None
    m = re.search(r"profID=([^&#]+)", href)
    if m:
        name = clean_name(unquote(m.group(1).replace("+", " ")))
        return name or None
    return None


# ---------------------------------------------------------------------------
# Universities
# ---------------------------------------------------------------------------

# canonical name -> patterns seen in prompts
UNIVERSITY_PATTERNS: Dict[str, re.Pattern[str]] = {
    "Georgia Tech": re.compile(r"\b(georgia\s+tech|gatech|georgia\s+institute\s+of\s+technology|gt)\b", re.I),
    "University of Georgia": re.compile(r"\b(university\s+of\s+georgia|uga)\b", re.I),
    "Georgia State University": re.compile(r"\b(georgia\s+state(\s+university)?|gsu)\b", re.I),
    "Emory University": re.compile(r"\bemory(\s+university)?\b", re.I),
}

_GENERIC_UNIVERSITY_RE = re.compile(
    r"\b(University\s+of(?:\s+[A-Z][a-z]+)+|(?:[A-Z][a-z]+\s+)+(?:State\s+)?University)"
)


def extract_university(text: str) -> Optional[str]:
    """
    Find a university name in free-form text.

    Known aliases map to a canonical name; otherwise a capitalized
    'X University' / 'University of X' phrase is returned as written.
    """
    if not text:
        return None
    for canonical, pattern in UNIVERSITY_PATTERNS.items():
        if pattern.search(text):
            return canonical
    m = _GENERIC_UNIVERSITY_RE.search(text)
    if m:
        return m.group(1).strip()
    return None


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def format_professor_line(record: ProfessorRecord) -> str:
    """
    Compact one-line summary, e.g. 'Prof: Jane Doe | Rating: 4.2/5 | GPA: 3.80'.
    """
    parts = [f"Prof: {record.name}"]
    if record.rating is not None:
        parts.append(f"Rating: {record.rating:g}/5")
    if record.has_gpa:
        parts.append(f"GPA: {record.avg_gpa:.2f}")
    if record.difficulty is not None:
        parts.append(f"Diff: {record.difficulty:g}/5")
    if record.would_take_again is not None:
        parts.append(f"Again: {record.would_take_again:g}%")
    return " | ".join(parts)
