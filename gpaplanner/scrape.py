"""
Scraping of the course-evaluation site and the ratings site.

The network functions load a page in a Playwright tab and hand the HTML to
the extract_* functions, which use BeautifulSoup and are pure (easy to test
against saved pages).

Failure policy:
- "not found" is an empty result, never an exception
- navigation/selector timeouts and evaluation errors are logged and
  converted into an empty result as well
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page, Response

from gpaplanner.browser import wait_for_first_selector
from gpaplanner.config import Settings
from gpaplanner.courses import clean_name, decode_professor_id, normalize_name, parse_gpa
from gpaplanner.model import ProfessorRecord, Source


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# URLs & selectors
# ---------------------------------------------------------------------------

COURSE_EVAL_BASE_URL = "https://critique.gatech.edu"
RATINGS_BASE_URL = "https://www.ratemyprofessors.com"

# Candidate selectors for professor entries, in priority order.
PROFESSOR_SELECTORS = (
    'a[href^="/prof?profID="]',
    'a[href*="profID="]',
    'a[href*="/instructor/"]',
    "[data-testid='instructor-link']",
    ".instructor-link",
    ".professor-link",
)

RATING_CARD_SELECTORS = (
    "a[class*='TeacherCard']",
    "a[href*='/professor/']",
)

BLOCKED_STATUSES = {403, 429}


def course_url(course: str) -> str:
    return f"{COURSE_EVAL_BASE_URL}/course?courseID={quote(course)}"


def ratings_search_url(professor_name: str) -> str:
    return f"{RATINGS_BASE_URL}/search/professors?q={quote(professor_name)}"


# ---------------------------------------------------------------------------
# Course-evaluation extraction
# ---------------------------------------------------------------------------


def _closest_row(el: Tag) -> Optional[Tag]:
    """
    Nearest ancestor that represents one professor row (table row or a *row* class).
    """
    for parent in el.parents:
        if not isinstance(parent, Tag):
            continue
        if parent.name == "tr":
            return parent
        classes = parent.get("class") or []
        if any("row" in c for c in classes):
            return parent
    return None


def _gpa_near(el: Tag) -> Optional[float]:
    """
    GPA for a professor element: own text, then closest row, then siblings.
    """
    gpa = parse_gpa(el.get_text(" ", strip=True))
    if gpa is not None:
        return gpa

    row = _closest_row(el)
    if row is not None:
        gpa = parse_gpa(row.get_text(" ", strip=True))
        if gpa is not None:
            return gpa

    for sibling in el.find_next_siblings():
        gpa = parse_gpa(sibling.get_text(" ", strip=True))
        if gpa is not None:
            return gpa
    for sibling in el.find_previous_siblings():
        gpa = parse_gpa(sibling.get_text(" ", strip=True))
        if gpa is not None:
            return gpa
    return None


def _professor_name(el: Tag) -> str:
    href = el.get("href") if el.name == "a" else None
    decoded = decode_professor_id(href if isinstance(href, str) else None)
    if decoded:
        return decoded
    return clean_name(el.get_text(" ", strip=True))


def extract_course_professors(
    html: str,
    course: str,
    selectors: Sequence[str] = PROFESSOR_SELECTORS,
) -> List[ProfessorRecord]:
    """
    Extract professor records from a course page.

    The first selector that matches anything wins. Entries without a name
    are dropped; entries without a GPA are kept with avg_gpa=None.
    A professor listed twice keeps the first entry.
    """
    soup = BeautifulSoup(html, "html.parser")

    elements: List[Tag] = []
    for selector in selectors:
        elements = soup.select(selector)
        if elements:
            logger.debug("%s: %d professor elements via %s", course, len(elements), selector)
            break

    records: List[ProfessorRecord] = []
    seen = set()
    for el in elements:
        name = _professor_name(el)
        key = normalize_name(name)
        if not key or key in seen:
            continue
        seen.add(key)

        href = el.get("href")
        records.append(
            ProfessorRecord(
                name=name,
                course=course,
                source=Source.COURSE_EVAL,
                avg_gpa=_gpa_near(el),
                url=urljoin(COURSE_EVAL_BASE_URL + "/", href) if isinstance(href, str) else None,
            )
        )
    return records


# ---------------------------------------------------------------------------
# Ratings-site extraction
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def _number(el: Optional[Tag], upper: Optional[float] = None) -> Optional[float]:
    if el is None:
        return None
    m = _NUMBER_RE.search(el.get_text(" ", strip=True))
    if not m:
        return None
    value = float(m.group(0))
    if upper is not None and not (0 <= value <= upper):
        return None
    return value


def _name_tokens(name: str) -> List[str]:
    return [t for t in re.split(r"[\s,.]+", normalize_name(name)) if len(t) > 1]


def names_match(wanted: str, candidate: str) -> bool:
    """
    True if every token of the wanted name starts some token of the candidate
    ('Smith, John' matches 'John A. Smith', 'Georgia Tech' matches
    'Georgia Institute of Technology').
    """
    tokens = _name_tokens(wanted)
    if not tokens:
        return False
    candidate_tokens = _name_tokens(candidate)
    return all(any(c.startswith(t) for c in candidate_tokens) for t in tokens)


def extract_ratings(
    html: str,
    professor_name: str,
    course: str = "",
    university: Optional[str] = None,
) -> Optional[ProfessorRecord]:
    """
    Find the professor's card on a ratings-site search page.

    Returns a RATINGS_SITE record (rating 0-5, difficulty, would-take-again %,
    number of ratings) or None if no card matches the name (and school).
    """
    soup = BeautifulSoup(html, "html.parser")

    cards: List[Tag] = []
    for selector in RATING_CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            break

    for card in cards:
        name_el = card.select_one("[class*='CardName']")
        card_name = clean_name(name_el.get_text(" ", strip=True)) if name_el else ""
        if not card_name or not names_match(professor_name, card_name):
            continue

        school_el = card.select_one("[class*='CardSchool__School']")
        if university and school_el is not None:
            school = school_el.get_text(" ", strip=True)
            if not names_match(university, school):
                continue

        feedback = card.select("[class*='CardFeedback__CardFeedbackNumber']")
        count = _number(card.select_one("[class*='CardNumRating__CardNumRatingCount']"))
        dept_el = card.select_one("[class*='CardSchool__Department']")
        href = card.get("href")

        return ProfessorRecord(
            name=card_name,
            course=course,
            source=Source.RATINGS_SITE,
            rating=_number(card.select_one("[class*='CardNumRating__CardNumRatingNumber']"), upper=5),
            would_take_again=_number(feedback[0], upper=100) if len(feedback) > 0 else None,
            difficulty=_number(feedback[1], upper=5) if len(feedback) > 1 else None,
            num_ratings=int(count) if count is not None else None,
            department=dept_el.get_text(" ", strip=True) if dept_el else None,
            url=urljoin(RATINGS_BASE_URL + "/", href) if isinstance(href, str) else None,
        )
    return None


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


def _log_blocked(response: Optional[Response], url: str) -> None:
    if response is not None and response.status in BLOCKED_STATUSES:
        logger.warning("upstream answered %d for %s (blocked or rate limited)", response.status, url)


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "-", text).strip("-").lower() or "page"


def save_snapshot(settings: Settings, name: str, html: str) -> Optional[Path]:
    """
    Write a page's HTML to the debug directory (only with debug_snapshots on).
    """
    if not settings.debug_snapshots:
        return None
    settings.debug_dir.mkdir(parents=True, exist_ok=True)
    out = settings.debug_dir / f"{_slug(name)}.html"
    out.write_text(html, encoding="utf-8")
    logger.debug("snapshot written: %s", out)
    return out


async def scrape_course_critique(page: Page, course: str, settings: Settings) -> List[ProfessorRecord]:
    """
    Load the course page and extract its professors (empty list on any failure).
    """
    url = course_url(course)
    logger.info("course-eval: loading %s", url)
    try:
        response = await page.goto(url, wait_until="domcontentloaded", timeout=settings.navigation_timeout_ms)
        _log_blocked(response, url)

        selector = await wait_for_first_selector(page, PROFESSOR_SELECTORS, settings.selector_timeout_ms)
        html = await page.content()
        save_snapshot(settings, f"course-{course}", html)

        if selector is None:
            logger.info("course-eval: no professor entries for %s", course)
            return []

        records = extract_course_professors(html, course)
    except Exception as exc:
        logger.error("course-eval: scraping %s failed: %s", course, exc)
        return []

    logger.info("course-eval: %d professors for %s", len(records), course)
    return records


async def scrape_ratings(
    page: Page,
    university: str,
    professor_name: str,
    settings: Settings,
    course: str = "",
) -> Optional[ProfessorRecord]:
    """
    Look a professor up on the ratings site (None if not found or on failure).
    """
    url = ratings_search_url(professor_name)
    logger.info("ratings: searching %r", professor_name)
    try:
        response = await page.goto(url, wait_until="domcontentloaded", timeout=settings.navigation_timeout_ms)
        _log_blocked(response, url)

        selector = await wait_for_first_selector(page, RATING_CARD_SELECTORS, settings.selector_timeout_ms)
        html = await page.content()
        save_snapshot(settings, f"ratings-{professor_name}", html)
        if selector is None:
            return None

        record = extract_ratings(html, professor_name, course=course, university=university)
    except Exception as exc:
        logger.error("ratings: lookup of %r failed: %s", professor_name, exc)
        return None

    if record is None:
        logger.info("ratings: no card for %r at %s", professor_name, university)
    return record
