"""
Comprehensive (whole catalog) scrape of the course-evaluation site.

Walks departments -> courses -> instructor pages and builds one
CourseAggregate per course. Instructor pages of a course are loaded
concurrently on a bounded pool of tabs, batch by batch, with a fixed pause
between batches to keep the load on the site low.

The HTML parsing lives in the parse_* functions (BeautifulSoup, pure).
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from playwright.async_api import BrowserContext

from gpaplanner.browser import DEFAULT_POOL_SIZE, PagePool, wait_for_first_selector
from gpaplanner.config import Settings
from gpaplanner.courses import clean_name, decode_professor_id, normalize_name, parse_gpa
from gpaplanner.errors import ScrapeError
from gpaplanner.model import ComprehensiveData, CourseAggregate, ProfessorAggregate, SectionData
from gpaplanner.retry import SleepFn, retry_async
from gpaplanner.scrape import COURSE_EVAL_BASE_URL, save_snapshot


logger = logging.getLogger(__name__)

UNIVERSITY_NAME = "Georgia Institute of Technology"

COURSE_LINK_SELECTOR = 'a[href*="/course"]'
INSTRUCTOR_SELECTORS = ('a[href*="/instructor/"]', 'a[href*="profID="]')
TITLE_SELECTORS = ("h1", ".course-title", ".page-title")
GPA_SELECTORS = (".professor-gpa-value", ".gpa-value", "[data-testid='gpa-value']", ".standard-data", ".gpa")
SECTION_ROW_SELECTOR = "tr, .section-row, .data-row"
SECTION_CELL_SELECTOR = "td, .cell, .data-cell"

DEPARTMENT_RE = re.compile(r"/course(?:/|\?courseID=)([A-Z]{2,4})(?![A-Za-z])")
COURSE_IN_HREF_RE = re.compile(r"([A-Z]{2,4})(?:\s|%20|\+)*(\d{4})")
YEAR_RE = re.compile(r"\b(\d{4})\b")
STUDENTS_RE = re.compile(r"\d+")

HIGHEST_GPA_COUNT = 50
LOWEST_GPA_COUNT = 20
MOST_POPULAR_COUNT = 30


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_department_codes(html: str) -> List[str]:
    """
    Department codes linked from a page, in order of first appearance.
    """
    soup = BeautifulSoup(html, "html.parser")
    out: List[str] = []
    for a in soup.select(COURSE_LINK_SELECTOR):
        href = a.get("href")
        if not isinstance(href, str):
            continue
        m = DEPARTMENT_RE.search(href)
        if m and m.group(1) not in out:
            out.append(m.group(1))
    return out


def parse_course_links(
    html: str, department: str, base_url: str = COURSE_EVAL_BASE_URL
) -> List[Tuple[str, str]]:
    """
    (course_code, absolute_url) for every course of one department on the page.
    """
    soup = BeautifulSoup(html, "html.parser")
    out: List[Tuple[str, str]] = []
    seen = set()
    for a in soup.select(COURSE_LINK_SELECTOR):
        href = a.get("href")
        if not isinstance(href, str):
            continue
        m = COURSE_IN_HREF_RE.search(href)
        if not m or m.group(1) != department:
            continue
        code = f"{m.group(1)} {m.group(2)}"
        if code in seen:
            continue
        seen.add(code)
        out.append((code, urljoin(base_url + "/", href)))
    return out


def parse_course_title(html: str) -> Tuple[Optional[str], str]:
    """
    Course code and name from the page title ('CS 1301 - Intro to Computing').
    """
    soup = BeautifulSoup(html, "html.parser")
    for selector in TITLE_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        title = clean_name(el.get_text(" ", strip=True))
        m = re.match(r"^([A-Z]{2,4})\s*(\d{4})\s*[-:]?\s*(.*)$", title)
        if m:
            return f"{m.group(1)} {m.group(2)}", m.group(3).strip()
    return None, ""


def parse_instructor_links(html: str, base_url: str = COURSE_EVAL_BASE_URL) -> List[Tuple[str, str]]:
    """
    (name, absolute_url) for every instructor linked from a course page.
    """
    soup = BeautifulSoup(html, "html.parser")
    out: List[Tuple[str, str]] = []
    seen = set()
    for selector in INSTRUCTOR_SELECTORS:
        for a in soup.select(selector):
            href = a.get("href")
            if not isinstance(href, str):
                continue
            name = clean_name(a.get_text(" ", strip=True)) or decode_professor_id(href) or ""
            key = normalize_name(name)
            if not key or key in seen:
                continue
            seen.add(key)
            out.append((name, urljoin(base_url + "/", href)))
    return out


def _cells(row: Tag) -> List[str]:
    return [c.get_text(" ", strip=True) for c in row.select(SECTION_CELL_SELECTOR)]


def parse_sections(soup: BeautifulSoup) -> List[SectionData]:
    """
    Section rows: semester | GPA | students (further cells ignored).
    Rows where any of the three cannot be read are skipped.
    """
    sections: List[SectionData] = []
    for row in soup.select(SECTION_ROW_SELECTOR):
        cells = _cells(row)
        if len(cells) < 3:
            continue
        semester, gpa_text, students_text = cells[0], cells[1], cells[2]
        gpa = parse_gpa(gpa_text)
        students = STUDENTS_RE.search(students_text)
        if not semester or gpa is None or students is None:
            continue
        year = YEAR_RE.search(semester)
        sections.append(
            SectionData(
                semester=semester,
                year=year.group(1) if year else "",
                gpa=gpa,
                students=int(students.group(0)),
                section=cells[3] if len(cells) > 3 and cells[3] else "A",
            )
        )
    return sections


def parse_professor_page(html: str, name: str, url: str) -> ProfessorAggregate:
    """
    Professor history for one course. The average is weighted by students
    when section rows exist, otherwise the headline GPA on the page is used.
    """
    soup = BeautifulSoup(html, "html.parser")

    headline: Optional[float] = None
    for selector in GPA_SELECTORS:
        el = soup.select_one(selector)
        if el is not None:
            headline = parse_gpa(el.get_text(" ", strip=True))
            if headline is not None:
                break

    sections = parse_sections(soup)
    total_students = sum(s.students for s in sections)
    if total_students > 0:
        avg = sum(s.gpa * s.students for s in sections) / total_students
    else:
        avg = headline or 0.0

    return ProfessorAggregate(name=name, avg_gpa=avg, sections=sections, total_students=total_students, url=url)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def course_average_gpa(professors: Sequence[ProfessorAggregate]) -> float:
    """
    Student-weighted mean over all sections of all professors (0.0 without students).
    """
    points = 0.0
    students = 0
    for prof in professors:
        for section in prof.sections:
            points += section.gpa * section.students
            students += section.students
    return points / students if students > 0 else 0.0


def build_course(
    code: str, name: str, department: str, professors: List[ProfessorAggregate], url: str
) -> CourseAggregate:
    return CourseAggregate(
        course_code=code,
        course_name=name,
        department=department,
        professors=professors,
        average_gpa=course_average_gpa(professors),
        total_sections=sum(len(p.sections) for p in professors),
        url=url,
    )


def summarize_courses(courses: Sequence[CourseAggregate]) -> Dict[str, Any]:
    by_gpa = sorted(courses, key=lambda c: c.average_gpa, reverse=True)
    by_students = sorted(courses, key=lambda c: c.total_students, reverse=True)

    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for c in courses:
        totals[c.department] = totals.get(c.department, 0.0) + c.average_gpa
        counts[c.department] = counts.get(c.department, 0) + 1

    return {
        "highest_gpa_courses": by_gpa[:HIGHEST_GPA_COUNT],
        "lowest_gpa_courses": by_gpa[-LOWEST_GPA_COUNT:] if by_gpa else [],
        "most_popular_courses": by_students[:MOST_POPULAR_COUNT],
        "department_averages": {d: totals[d] / counts[d] for d in totals},
    }


# ---------------------------------------------------------------------------
# Scraper
# ---------------------------------------------------------------------------


class CatalogScraper:
    def __init__(
        self,
        context: BrowserContext,
        settings: Settings,
        pool_size: int = DEFAULT_POOL_SIZE,
        batch_delay: float = 1.0,
        base_url: str = COURSE_EVAL_BASE_URL,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.pool = PagePool(context, pool_size)
        self.pool_size = pool_size
        self.batch_delay = batch_delay
        self.base_url = base_url
        self._sleep = sleep

    async def _load(self, url: str, selectors: Sequence[str]) -> str:
        async with self.pool.page() as page:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout_ms)
            await wait_for_first_selector(page, selectors, self.settings.selector_timeout_ms)
            html = await page.content()
        save_snapshot(self.settings, url, html)
        return html

    async def _departments_once(self) -> List[str]:
        html = await self._load(self.base_url + "/", (COURSE_LINK_SELECTOR,))
        departments = parse_department_codes(html)
        if not departments:
            raise ScrapeError("no department links on the start page")
        return departments

    async def scrape_departments(self) -> List[str]:
        departments = await retry_async(
            self._departments_once,
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_base_delay,
            sleep=self._sleep,
            label="department list",
        )
        logger.info("catalog: %d departments", len(departments))
        return departments

    async def scrape_department(self, department: str) -> List[CourseAggregate]:
        html = await self._load(f"{self.base_url}/course/{department}", (COURSE_LINK_SELECTOR,))
        links = parse_course_links(html, department, self.base_url)
        logger.info("catalog: %s has %d courses", department, len(links))

        courses: List[CourseAggregate] = []
        for code, url in links:
            try:
                course = await self.scrape_course(url, department)
            except Exception as exc:
                logger.error("catalog: course %s failed: %s", code, exc)
                continue
            if course is not None:
                courses.append(course)
        return courses

    async def scrape_course(self, url: str, department: str) -> Optional[CourseAggregate]:
        html = await self._load(url, TITLE_SELECTORS)
        code, name = parse_course_title(html)
        if code is None:
            logger.info("catalog: no course code on %s", url)
            return None

        instructors = parse_instructor_links(html, self.base_url)
        professors: List[ProfessorAggregate] = []
        for start in range(0, len(instructors), self.pool_size):
            if start > 0:
                await self._sleep(self.batch_delay)
            batch = instructors[start : start + self.pool_size]
            results = await asyncio.gather(
                *(self._scrape_professor(prof_url, prof_name) for prof_name, prof_url in batch)
            )
            professors.extend(p for p in results if p is not None)

        return build_course(code, name, department, professors, url)

    async def _scrape_professor(self, url: str, name: str) -> Optional[ProfessorAggregate]:
        try:
            html = await self._load(url, GPA_SELECTORS)
        except Exception as exc:
            logger.error("catalog: professor page %s failed: %s", url, exc)
            return None
        return parse_professor_page(html, name, url)

    async def scrape_all(self, departments: Optional[List[str]] = None) -> ComprehensiveData:
        """
        Scrape every course of the given (default: all) departments.
        Each department is retried with backoff; one that still fails is
        logged and skipped.
        """
        if departments is None:
            departments = await self.scrape_departments()

        courses: List[CourseAggregate] = []
        for i, department in enumerate(departments):
            if i > 0:
                await self._sleep(self.batch_delay)
            try:
                found = await retry_async(
                    lambda: self.scrape_department(department),
                    max_retries=self.settings.max_retries,
                    base_delay=self.settings.retry_base_delay,
                    sleep=self._sleep,
                    label=f"department {department}",
                )
            except Exception as exc:
                logger.error("catalog: department %s failed: %s", department, exc)
                continue
            courses.extend(found)
            logger.info("catalog: %s done, %d courses", department, len(found))

        return ComprehensiveData(
            university=UNIVERSITY_NAME,
            last_updated=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            departments=list(departments),
            courses=courses,
            summary=summarize_courses(courses),
        )

    async def close(self) -> None:
        await self.pool.close()
