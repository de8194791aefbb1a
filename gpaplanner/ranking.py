"""
Merging course-evaluation records with ratings-site records, and ranking.

The course-evaluation site is the primary source: its records decide who is
in the list and its fields win on conflict. The ratings site only corroborates
(fills rating/difficulty/would-take-again) and breaks GPA ties.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from gpaplanner.courses import normalize_name
from gpaplanner.model import ProfessorRecord


# Professors kept per course for a direct lookup and for the schedule prompt.
TOP_N_LOOKUP = 5
TOP_N_SCHEDULE = 3

# Fields a secondary record may fill in when the primary record lacks them.
MERGEABLE_FIELDS = ("rating", "difficulty", "would_take_again", "num_ratings", "department", "url")


def merge_records(
    primary: Iterable[ProfessorRecord],
    secondary: Iterable[ProfessorRecord],
) -> List[ProfessorRecord]:
    """
    Merge two record lists for the same course by normalized professor name.

    - primary seeds the result (first occurrence of a name wins)
    - secondary fills only fields that are missing on the primary record
    - secondary records without a primary match are dropped
    Inputs are not modified. Order of the result follows primary.
    """
    merged: Dict[str, ProfessorRecord] = {}
    for rec in primary:
        key = normalize_name(rec.name)
        if not key or key in merged:
            continue
        merged[key] = replace(rec)

    for rec in secondary:
        key = normalize_name(rec.name)
        target = merged.get(key)
        if target is None:
            continue
        for name in MERGEABLE_FIELDS:
            if getattr(target, name) is None and getattr(rec, name) is not None:
                setattr(target, name, getattr(rec, name))

    return list(merged.values())


def _sort_key(rec: ProfessorRecord) -> Tuple[int, float, int, float, str]:
    # Python sorts ascending, so the "descending" parts are negated.
    gpa = rec.avg_gpa if rec.has_gpa else 0.0
    rating = rec.rating if rec.rating is not None else 0.0
    return (
        0 if rec.has_gpa else 1,
        -gpa,
        0 if rec.has_rating else 1,
        -rating,
        normalize_name(rec.name),
    )


def rank_records(records: Iterable[ProfessorRecord]) -> List[ProfessorRecord]:
    """
    Sort by GPA (desc), then rating (desc), then name (asc).

    Records with a GPA always come before records without one, whatever
    their ratings. The final name comparison makes the order total.
    """
    return sorted(records, key=_sort_key)


def top_professors(records: Iterable[ProfessorRecord], n: int) -> List[ProfessorRecord]:
    """
    First n distinct professors of an already ranked list.
    """
    if n <= 0:
        return []
    out: List[ProfessorRecord] = []
    seen = set()
    for rec in records:
        key = normalize_name(rec.name)
        if key in seen:
            continue
        seen.add(key)
        out.append(rec)
        if len(out) >= n:
            break
    return out


def merge_and_rank(
    primary: Iterable[ProfessorRecord],
    secondary: Iterable[ProfessorRecord] = (),
    n: Optional[int] = None,
) -> List[ProfessorRecord]:
    ranked = rank_records(merge_records(primary, secondary))
    if n is None:
        return ranked
    return top_professors(ranked, n)


def highest_gpa_group(records: Iterable[ProfessorRecord]) -> List[ProfessorRecord]:
    """
    Records sharing the highest known GPA (the group a rating tie-break applies to).
    """
    with_gpa = [r for r in records if r.has_gpa]
    if not with_gpa:
        return []
    best = max(r.avg_gpa for r in with_gpa)  # type: ignore[type-var]
    return [r for r in with_gpa if r.avg_gpa == best]
