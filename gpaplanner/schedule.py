"""
Schedule generation: the logic behind the /openai endpoint, without HTTP.

The generator collects professor data for every course named in the prompt,
optional major / core-curriculum search results and the upcoming semester
calendar, appends all of it to the user's prompt and asks the language model
for a schedule in a fixed markdown layout:

    **SEMESTER_MARKER:SPRING 2027**

    **CS 1301: Introduction to Computing**
    Prof: Jane Doe | GPA: 3.80 | Rating: 4.5/5

The reply is then checked: every course heading needs a "Prof:" line and a
"GPA:" marker in its block. Courses missing one are named in a corrective
instruction and the model is asked again, at most MAX_VERIFICATION_RETRIES
times; after that the last reply is returned as it is.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from gpaplanner.config import Settings
from gpaplanner.courses import (
    NON_DEPARTMENT_WORDS,
    extract_course_codes,
    extract_university,
    format_professor_line,
    normalize_course_code,
)
from gpaplanner.errors import InvalidCourseCodeError, RequestError, SearchError
from gpaplanner.llm import LLMClient
from gpaplanner.model import Citation, LLMReply, ProfessorRecord, ScheduleResult, SearchResult
from gpaplanner.planning import generate_semester_sequence
from gpaplanner.ranking import TOP_N_SCHEDULE, top_professors
from gpaplanner.search import WebSearch
from gpaplanner.service import ProfessorService


logger = logging.getLogger(__name__)

MAX_VERIFICATION_RETRIES = 2
MAX_TOOL_ROUNDS = 4
DEFAULT_SEMESTERS = 8

SCHEDULE_SYSTEM_PROMPT = """You are a college class schedule generator.
Output only the schedule: no introduction, no summary.

Rules:
1. Start every semester with a marker line: **SEMESTER_MARKER:FALL 2026** (actual term and year).
2. Put each course on its own bold heading line: **CS 1301: Introduction to Computing**
3. The line after each heading MUST start with "Prof: " and the professor's full name,
   followed by " | GPA: " and the GPA, then any other ratings, pipe separated.
4. Use the professor data provided. Prefer the highest-GPA professor. Never invent professors;
   if no data is given for a course write "Prof: TBA | GPA: N/A".
5. Keep semesters in chronological order and each course to at most 4 lines.
6. Plain markdown only."""

SEMESTER_MARKER_RE = re.compile(r"^\s*\*\*\s*SEMESTER_MARKER:\s*([A-Za-z]+\s+\d{4})\s*\*\*\s*$")
COURSE_HEADING_RE = re.compile(r"^\s*\*\*\s*([A-Za-z]{2,4}\s*-?\s*\d{4})\b[^\n]*\*\*\s*$")
PROF_MARKER_RE = re.compile(r"\bProf(?:essor)?:\s*\S", re.I)
GPA_MARKER_RE = re.compile(r"\bGPA:\s*(?:\d|N/?A)", re.I)

PROFESSOR_TOOL = {
    "type": "function",
    "function": {
        "name": "get_professor_data",
        "description": "Professors teaching a course, ranked by historical average GPA (highest first).",
        "parameters": {
            "type": "object",
            "properties": {
                "course": {"type": "string", "description": "Course code, e.g. CS 1301"},
                "university": {"type": "string"},
            },
            "required": ["course"],
        },
    },
}


# ---------------------------------------------------------------------------
# Reply inspection
# ---------------------------------------------------------------------------


def parse_semester_blocks(reply: str) -> List[Tuple[str, str]]:
    """
    Split a reply into (semester, text) pairs on SEMESTER_MARKER lines.
    Text before the first marker is ignored.
    """
    blocks: List[Tuple[str, str]] = []
    current: Optional[str] = None
    lines: List[str] = []
    for line in (reply or "").splitlines():
        m = SEMESTER_MARKER_RE.match(line)
        if m:
            if current is not None:
                blocks.append((current, "\n".join(lines).strip()))
            current = " ".join(m.group(1).upper().split())
            lines = []
        elif current is not None:
            lines.append(line)
    if current is not None:
        blocks.append((current, "\n".join(lines).strip()))
    return blocks


def _heading_code(line: str) -> Optional[str]:
    m = COURSE_HEADING_RE.match(line)
    if not m:
        return None
    # "**FALL 2026**" is a semester heading, not a course
    if m.group(1).split()[0].upper()[:4] in NON_DEPARTMENT_WORDS:
        return None
    try:
        return normalize_course_code(m.group(1))
    except InvalidCourseCodeError:
        return None


def find_courses_missing_professor(reply: str) -> List[str]:
    """
    Course codes whose heading block lacks a 'Prof:' line or a 'GPA:' marker.

    A block runs from a course heading to the next heading or semester marker.
    """
    missing: List[str] = []
    code: Optional[str] = None
    has_prof = has_gpa = False

    def close() -> None:
        if code is not None and not (has_prof and has_gpa) and code not in missing:
            missing.append(code)

    for line in (reply or "").splitlines():
        heading = _heading_code(line)
        if heading is not None or SEMESTER_MARKER_RE.match(line):
            close()
            code = heading
            has_prof = has_gpa = False
            continue
        if code is not None:
            has_prof = has_prof or bool(PROF_MARKER_RE.search(line))
            has_gpa = has_gpa or bool(GPA_MARKER_RE.search(line))
    close()
    return missing


def corrective_instruction(missing: Iterable[str]) -> str:
    names = ", ".join(missing)
    return (
        "IMPORTANT CORRECTION: your previous schedule was missing professor information for "
        f"{names}. Every course heading must be followed by a line starting with 'Prof: ' and "
        "containing 'GPA: '. Regenerate the complete schedule."
    )


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------


def _format_results(results: List[SearchResult]) -> List[str]:
    return [f"- {r.name}: {r.snippet} ({r.url})" for r in results]


def build_instruction_block(
    university: str,
    semesters: List[str],
    scraped: Dict[str, List[ProfessorRecord]],
    major: Optional[str] = None,
    major_results: Optional[List[SearchResult]] = None,
    core_results: Optional[List[SearchResult]] = None,
) -> str:
    lines = ["SCHEDULE CONTEXT", f"University: {university}"]
    if major:
        lines.append(f"Major: {major}")
    lines.append("Plan these semesters in order: " + ", ".join(semesters))

    if scraped:
        lines.append("")
        lines.append("PROFESSOR DATA (highest GPA first; use only these professors):")
        for course, records in scraped.items():
            if records:
                lines.append(f"{course}:")
                lines.extend(f"  {format_professor_line(r)}" for r in records)
            else:
                lines.append(f"{course}: no professor data found, write 'Prof: TBA | GPA: N/A'")

    if major_results:
        lines.append("")
        lines.append("MAJOR REQUIREMENTS (web search):")
        lines.extend(_format_results(major_results))
    if core_results:
        lines.append("")
        lines.append("CORE CURRICULUM (web search):")
        lines.extend(_format_results(core_results))

    lines.append("")
    lines.append(
        "Every course heading must be followed by a 'Prof: <name> | GPA: <gpa>' line. "
        "Start every semester with **SEMESTER_MARKER:<TERM YEAR>**."
    )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ScheduleGenerator:
    def __init__(
        self,
        professors: ProfessorService,
        llm: LLMClient,
        search: Optional[WebSearch] = None,
        settings: Optional[Settings] = None,
        today: Optional[date] = None,
    ) -> None:
        self.professors = professors
        self.llm = llm
        self.search = search
        self.settings = settings or Settings()
        self.today = today

    async def generate(
        self,
        prompt: str,
        major: Optional[str] = None,
        university: Optional[str] = None,
        courses: Optional[Iterable[str]] = None,
    ) -> ScheduleResult:
        """
        Build a schedule for a free-text request.

        Raises RequestError for an empty prompt; LLMError propagates when the
        model cannot be reached at all.
        """
        if not (prompt or "").strip():
            raise RequestError("Prompt is required")

        codes = self._course_codes(prompt, courses)
        university = university or extract_university(prompt) or self.settings.default_university
        semesters = generate_semester_sequence(DEFAULT_SEMESTERS, today=self.today)
        logger.info("schedule: %d courses at %s, major=%s", len(codes), university, major)

        major_results, core_results = await self._requirements(university, major)
        citations = [Citation(title=r.name, url=r.url) for r in major_results + core_results if r.url]

        scraped: Dict[str, List[ProfessorRecord]] = {}
        if not self.settings.use_function_calling:
            for code in codes:
                scraped[code] = await self._professors_for(code, university)

        block = build_instruction_block(university, semesters, scraped, major, major_results, core_results)
        if self.settings.use_function_calling and codes:
            block += "\nLook up professor data with get_professor_data for: " + ", ".join(codes)
        user = f"{prompt.strip()}\n\n{block}"

        reply = await self._verified_reply(user, university, scraped)
        return ScheduleResult(
            response=reply.text,
            citations=citations + reply.citations,
            used_web_search=bool(major_results or core_results) or reply.used_web_search,
            scraped_data=scraped,
        )

    def _course_codes(self, prompt: str, courses: Optional[Iterable[str]]) -> List[str]:
        out: List[str] = []
        for hint in courses or []:
            try:
                code = normalize_course_code(hint)
            except InvalidCourseCodeError:
                logger.warning("schedule: ignoring course hint %r", hint)
                continue
            if code not in out:
                out.append(code)
        for code in extract_course_codes(prompt):
            if code not in out:
                out.append(code)
        return out

    async def _professors_for(self, code: str, university: str) -> List[ProfessorRecord]:
        records = await self.professors.get_professors(code, university)
        return top_professors(records, TOP_N_SCHEDULE)

    async def _search(self, query: str) -> List[SearchResult]:
        if self.search is None:
            return []
        try:
            return await self.search.search(query)
        except SearchError as exc:
            logger.warning("schedule: %s", exc)
            return []

    async def _requirements(
        self, university: str, major: Optional[str]
    ) -> Tuple[List[SearchResult], List[SearchResult]]:
        if not major:
            return [], []
        major_results = await self._search(f"{university} {major} major degree requirements")
        core_results = await self._search(f"{university} core curriculum requirements")
        return major_results, core_results

    async def _call(self, user: str, university: str, scraped: Dict[str, List[ProfessorRecord]]) -> LLMReply:
        if not self.settings.use_function_calling:
            return await self.llm.complete(SCHEDULE_SYSTEM_PROMPT, user)

        async def handle(name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
            if name != "get_professor_data":
                return {"error": f"unknown tool {name}"}
            try:
                code = normalize_course_code(str(arguments.get("course", "")))
            except InvalidCourseCodeError as exc:
                return {"error": str(exc)}
            records = await self._professors_for(code, str(arguments.get("university") or university))
            scraped[code] = records
            return {"course": code, "professors": [r.to_dict() for r in records]}

        return await self.llm.complete_with_tools(
            SCHEDULE_SYSTEM_PROMPT, user, [PROFESSOR_TOOL], handle, max_rounds=MAX_TOOL_ROUNDS
        )

    async def _verified_reply(
        self, user: str, university: str, scraped: Dict[str, List[ProfessorRecord]]
    ) -> LLMReply:
        reply = await self._call(user, university, scraped)
        for attempt in range(1, MAX_VERIFICATION_RETRIES + 1):
            missing = find_courses_missing_professor(reply.text)
            if not missing:
                break
            logger.warning(
                "schedule: reply lacks professor lines for %s (retry %d/%d)",
                ", ".join(missing),
                attempt,
                MAX_VERIFICATION_RETRIES,
            )
            reply = await self._call(f"{user}\n\n{corrective_instruction(missing)}", university, scraped)
        return reply
