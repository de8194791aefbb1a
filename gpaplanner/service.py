"""
Professor lookup: the logic behind the /scraper endpoint, without HTTP.

ProfessorService ties the pieces together for one course:

    cache -> course-evaluation scrape -> ratings tie-break -> merge/rank
          -> validation/backfill -> cache

lookup() shapes the result the way the endpoint returns it and raises
RequestError / NotFoundError for the 400 / 404 cases.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from playwright.async_api import BrowserContext

from gpaplanner.browser import DEFAULT_POOL_SIZE, PagePool
from gpaplanner.cache import ProfessorCache
from gpaplanner.config import Settings
from gpaplanner.courses import normalize_course_code
from gpaplanner.errors import InvalidCourseCodeError, NotFoundError, RequestError
from gpaplanner.fallback import ProfessorEnhancer
from gpaplanner.llm import LLMClient
from gpaplanner.model import ProfessorRecord, ValidationResult
from gpaplanner.planning import calculate_graduation_plan
from gpaplanner.ranking import TOP_N_LOOKUP, highest_gpa_group, merge_and_rank, rank_records, top_professors
from gpaplanner.scrape import scrape_course_critique, scrape_ratings
from gpaplanner.search import WebSearch


logger = logging.getLogger(__name__)

TIE_BREAK_NOTE = "Multiple professors had the same highest GPA. Used ratings-site rating as tiebreaker."


class BrowserScraper:
    """
    Runs the scrape functions on tabs borrowed from a shared PagePool.
    """

    def __init__(self, context: BrowserContext, settings: Settings, pool_size: int = DEFAULT_POOL_SIZE) -> None:
        self.settings = settings
        self.pool = PagePool(context, pool_size)

    async def course_professors(self, course: str) -> List[ProfessorRecord]:
        async with self.pool.page() as page:
            return await scrape_course_critique(page, course, self.settings)

    async def ratings(self, university: str, professor_name: str, course: str = "") -> Optional[ProfessorRecord]:
        async with self.pool.page() as page:
            return await scrape_ratings(page, university, professor_name, self.settings, course=course)

    async def close(self) -> None:
        await self.pool.close()


class ProfessorService:
    def __init__(
        self,
        cache: ProfessorCache,
        scraper: Any,
        enhancer: Optional[ProfessorEnhancer] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.cache = cache
        self.scraper = scraper
        self.settings = settings or Settings()
        self.enhancer = enhancer or ProfessorEnhancer(cache, scraper=scraper.course_professors, settings=self.settings)

    async def fetch(self, course: str, university: Optional[str] = None) -> ValidationResult:
        """
        Ranked, validated records for one course. Cache hits skip all network work.
        """
        course = normalize_course_code(course)
        university = university or self.settings.default_university

        cached = self.cache.get(university, course)
        if cached is not None:
            return ValidationResult(is_valid=True, records=cached, message="cached")

        records = rank_records(await self.scraper.course_professors(course))
        records = await self._break_ties(course, university, records)

        result = await self.enhancer.enhance(course, university, records)
        if result.is_valid and not result.enhanced:
            self.cache.set(university, course, result.records)
        return result

    async def get_professors(self, course: str, university: Optional[str] = None) -> List[ProfessorRecord]:
        result = await self.fetch(course, university)
        return result.records if result.is_valid else []

    async def _break_ties(
        self, course: str, university: str, records: List[ProfessorRecord]
    ) -> List[ProfessorRecord]:
        """
        Look up ratings only for professors sharing the top GPA.
        """
        group = highest_gpa_group(records)
        if len(group) < 2:
            return records

        logger.info("%s: %d professors share GPA %.2f, fetching ratings", course, len(group), group[0].avg_gpa)
        found = await asyncio.gather(*(self.scraper.ratings(university, p.name, course) for p in group))

        ratings: List[ProfessorRecord] = []
        for prof, rec in zip(group, found):
            if rec is not None:
                # ratings-site spelling differs; key it to the primary name
                ratings.append(replace(rec, name=prof.name))
        return merge_and_rank(records, ratings)


async def lookup(
    service: ProfessorService,
    course: str,
    university: Optional[str] = None,
    student_year: Optional[str] = None,
    top_n: int = TOP_N_LOOKUP,
) -> Dict[str, Any]:
    """
    Best professor for a course plus the ranked top list and an optional
    graduation plan:

        {"professor": {...}, "allProfessors": [...], "graduationPlan": {...} | None}
    """
    if not (course or "").strip():
        raise RequestError("Course code is required")

    plan = calculate_graduation_plan(student_year) if student_year else None
    plan_dict = plan.to_dict() if plan else None
    if plan:
        logger.info("student is a %s, %d semesters remaining", plan.current_year, plan.semesters_remaining)

    try:
        result = await service.fetch(course, university)
    except InvalidCourseCodeError as exc:
        raise RequestError(str(exc), graduationPlan=plan_dict) from exc

    if not result.is_valid or not result.records:
        raise NotFoundError(result.message or f"No professors found for {course}", graduationPlan=plan_dict)

    ranked = top_professors(result.records, top_n)
    out: Dict[str, Any] = {
        "professor": ranked[0].to_dict(),
        "allProfessors": [r.to_dict() for r in ranked],
        "graduationPlan": plan_dict,
    }
    tied = highest_gpa_group(ranked)
    if len(tied) > 1 and any(r.has_rating for r in tied):
        out["note"] = TIE_BREAK_NOTE
    return out


def create_professor_service(
    context: BrowserContext,
    settings: Settings,
    cache: Optional[ProfessorCache] = None,
    search: Optional[WebSearch] = None,
    llm: Optional[LLMClient] = None,
) -> ProfessorService:
    """
    Wire a ProfessorService to a live browser context and the configured adapters.
    """
    cache = cache or ProfessorCache(settings.cache_ttl_seconds, settings.cache_max_entries)
    scraper = BrowserScraper(context, settings)
    enhancer = ProfessorEnhancer(
        cache,
        search=search or WebSearch.from_settings(settings),
        llm=llm or LLMClient.from_settings(settings),
        scraper=scraper.course_professors,
        settings=settings,
    )
    return ProfessorService(cache, scraper, enhancer, settings)
