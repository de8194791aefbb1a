"""
Validation and backfill of scraped professor data.

A course's record list is valid when it is non-empty and every record has
a name and a GPA. Invalid lists are backfilled tier by tier:

1. re-scrape the course-evaluation site (bounded retries)
2. web search for "<course> professors at <university> course critique"
3. one language-model call answering in a strict JSON shape, with the
   search snippets as context when the search found anything

The model's answer goes through parse_professor_json(), which rejects
anything off-contract instead of guessing, and never overrides a GPA that
was scraped. Nothing is ever made up here: when every tier fails, the
professors that do have a scraped GPA are kept; with none the result is
invalid and carries a message.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, List, Optional

from gpaplanner.cache import ProfessorCache
from gpaplanner.config import Settings
from gpaplanner.courses import clean_name, is_valid_gpa, normalize_name
from gpaplanner.errors import LLMError, LLMResponseError, RetryExhaustedError, SearchError
from gpaplanner.llm import LLMClient
from gpaplanner.model import ProfessorRecord, SearchResult, Source, ValidationResult
from gpaplanner.ranking import rank_records
from gpaplanner.retry import SleepFn, retry_until_nonempty
from gpaplanner.search import WebSearch


logger = logging.getLogger(__name__)

ScrapeFn = Callable[[str], Awaitable[List[ProfessorRecord]]]

SEARCH_QUERY = "{course} professors at {university} course critique"

EXTRACTION_SYSTEM_PROMPT = (
    "You extract professor data for one university course. "
    'Answer with a JSON object of the form {"professors": [{"name": string, '
    '"avgGPA": number or null, "teachesClass": boolean}]}. '
    "avgGPA is the professor's historical average GPA for the course on a 0.0-4.0 scale. "
    "Only list professors that actually teach the course. Do not invent names; "
    'if you do not know any, answer {"professors": []}.'
)


def is_valid(records: Optional[List[ProfessorRecord]]) -> bool:
    if not records:
        return False
    return all(clean_name(r.name) and r.has_gpa for r in records)


def usable_records(records: Optional[List[ProfessorRecord]]) -> List[ProfessorRecord]:
    """The records that would pass is_valid() on their own."""
    return [r for r in records or [] if clean_name(r.name) and r.has_gpa]


def prefer_scraped(
    scraped: List[ProfessorRecord], found: List[ProfessorRecord]
) -> List[ProfessorRecord]:
    """
    Scraped GPA rows plus any model-found professor not already scraped.
    A model answer never replaces a GPA read from course evaluations.
    """
    seen = {normalize_name(r.name) for r in scraped}
    return list(scraped) + [r for r in found if normalize_name(r.name) not in seen]


# ---------------------------------------------------------------------------
# Strict parser for the model's JSON answer
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.S)


def parse_professor_json(text: str, course: str) -> List[ProfessorRecord]:
    """
    Parse {"professors": [{"name", "avgGPA", "teachesClass"?}]} (or a bare list).

    Raises LLMResponseError on invalid JSON or any schema violation.
    Professors with teachesClass == false are left out.
    """
    m = _FENCE_RE.match(text or "")
    payload = m.group(1) if m else (text or "")
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"answer is not valid JSON: {exc}") from exc

    if isinstance(data, dict):
        if "professors" not in data:
            raise LLMResponseError("answer has no 'professors' key")
        data = data["professors"]
    if not isinstance(data, list):
        raise LLMResponseError("'professors' must be a list")

    records: List[ProfessorRecord] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise LLMResponseError(f"professor #{i} is not an object")

        name = item.get("name")
        if not isinstance(name, str) or not clean_name(name):
            raise LLMResponseError(f"professor #{i} has no name")

        gpa = item.get("avgGPA")
        if gpa is not None:
            if isinstance(gpa, bool) or not isinstance(gpa, (int, float)):
                raise LLMResponseError(f"professor #{i} avgGPA is not a number")
            gpa = float(gpa)
            if not is_valid_gpa(gpa):
                raise LLMResponseError(f"professor #{i} avgGPA {gpa} is outside 0.0-4.0")

        teaches = item.get("teachesClass")
        if teaches is not None and not isinstance(teaches, bool):
            raise LLMResponseError(f"professor #{i} teachesClass is not a boolean")
        if teaches is False:
            continue

        records.append(
            ProfessorRecord(
                name=clean_name(name),
                course=course,
                source=Source.WEB_SEARCH_FALLBACK,
                avg_gpa=gpa,
                teaches_class=teaches,
            )
        )
    return records


# ---------------------------------------------------------------------------
# Enhancer
# ---------------------------------------------------------------------------


def _format_snippets(results: List[SearchResult]) -> str:
    return "\n".join(f"- {r.name}: {r.snippet} ({r.url})" for r in results)


class ProfessorEnhancer:
    def __init__(
        self,
        cache: ProfessorCache,
        search: Optional[WebSearch] = None,
        llm: Optional[LLMClient] = None,
        scraper: Optional[ScrapeFn] = None,
        settings: Optional[Settings] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.cache = cache
        self.search = search
        self.llm = llm
        self.scraper = scraper
        self.settings = settings or Settings()
        self._sleep = sleep

    async def enhance(
        self,
        course: str,
        university: str,
        records: Optional[List[ProfessorRecord]] = None,
    ) -> ValidationResult:
        records = list(records or [])
        if is_valid(records):
            return ValidationResult(is_valid=True, records=records, message="scraped data is complete")

        logger.info("fallback: %s at %s has %d incomplete records, backfilling", course, university, len(records))

        rescraped = await self._rescrape(course)
        if is_valid(rescraped):
            return self._accept(course, university, rescraped, "re-scraped course-evaluation data")

        partial = usable_records(records) or usable_records(rescraped)

        results = await self._search(course, university)
        found = await self._ask_model(course, university, results)
        if found:
            how = "web search and language model" if results else "language model"
            return self._accept(course, university, prefer_scraped(partial, found), f"backfilled via {how}")

        if partial:
            # the caller caches non-enhanced valid results
            message = f"kept {len(partial)} of {len(records) or len(rescraped)} professors with a GPA"
            logger.info("fallback: %s for %s", message, course)
            return ValidationResult(is_valid=True, records=rank_records(partial), message=message)

        message = f"No professor data found for {course} at {university}"
        logger.warning("fallback: %s", message)
        return ValidationResult(is_valid=False, records=records, message=message)

    def _accept(
        self, course: str, university: str, records: List[ProfessorRecord], message: str
    ) -> ValidationResult:
        ranked = rank_records(records)
        self.cache.set(university, course, ranked)
        logger.info("fallback: %s for %s (%d professors)", message, course, len(ranked))
        return ValidationResult(is_valid=True, records=ranked, message=message, enhanced=True)

    async def _rescrape(self, course: str) -> List[ProfessorRecord]:
        if self.scraper is None:
            return []
        scraper = self.scraper
        try:
            return await retry_until_nonempty(
                lambda: scraper(course),
                max_attempts=self.settings.max_retries,
                base_delay=self.settings.retry_base_delay,
                sleep=self._sleep,
                label=f"scrape {course}",
            )
        except RetryExhaustedError as exc:
            logger.info("fallback: %s", exc)
            return []

    async def _search(self, course: str, university: str) -> List[SearchResult]:
        if self.search is None:
            return []
        query = SEARCH_QUERY.format(course=course, university=university)
        try:
            return await self.search.search(query)
        except SearchError as exc:
            logger.warning("fallback: %s", exc)
            return []

    async def _ask_model(
        self, course: str, university: str, results: List[SearchResult]
    ) -> List[ProfessorRecord]:
        if self.llm is None:
            return []

        if results:
            user = (
                f"Which professors teach {course} at {university}, and what is their average GPA "
                f"for it? Use these search results:\n{_format_snippets(results)}"
            )
        else:
            user = f"Find professors who teach {course} at {university}. Do not invent names."

        try:
            answer = await self.llm.complete_json(EXTRACTION_SYSTEM_PROMPT, user)
            return parse_professor_json(answer, course)
        except LLMResponseError as exc:
            logger.warning("fallback: rejected model answer for %s: %s", course, exc)
        except LLMError as exc:
            logger.warning("fallback: model call for %s failed: %s", course, exc)
        return []
