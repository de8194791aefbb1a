"""
CLI (Command Line Interface).

Quick terminal commands on top of the library, e.g.:

    gpaplanner lookup "CS 1301" --year sophomore
    gpaplanner schedule "I need CS 1301 and MATH 1552 next year" --major "Computer Science"
    gpaplanner plan junior --summer
    gpaplanner codes "I want to take CS 1301 and MATH 2551"
    gpaplanner catalog CS MATH --required "CS 1301" "MATH 1552" --major "Computer Science"

Note:
- lookup, schedule and catalog open a headless browser; plan and codes are offline
- --json prints the raw result dict instead of rich tables
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Dict

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from gpaplanner.analysis import CourseRecommendation, department_stats, optimal_recommendations, recommend
from gpaplanner.browser import DEFAULT_POOL_SIZE, open_browser
from gpaplanner.catalog import CatalogScraper
from gpaplanner.config import LOG_LEVELS, Settings
from gpaplanner.courses import extract_course_codes
from gpaplanner.errors import GpaPlannerError, RequestError
from gpaplanner.llm import LLMClient
from gpaplanner.model import ComprehensiveData
from gpaplanner.planning import calculate_graduation_plan
from gpaplanner.schedule import ScheduleGenerator
from gpaplanner.search import WebSearch
from gpaplanner.service import create_professor_service, lookup


console = Console()

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """
    Route all package logging through rich. Safe to call more than once.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False))
    # third-party chatter
    for noisy in ("httpx", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _professor_table(title: str, professors: list[Dict[str, Any]]) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Professor")
    table.add_column("GPA", justify="right")
    table.add_column("Rating", justify="right")
    table.add_column("Source")
    for i, p in enumerate(professors, start=1):
        gpa = p.get("avgGPA") or 0
        rating = p.get("rating")
        table.add_row(
            str(i),
            str(p.get("name", "")),
            f"{gpa:.2f}" if gpa else "-",
            f"{rating:g}/5" if rating is not None else "-",
            str(p.get("source", "")),
        )
    return table


async def _lookup(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    async with open_browser(settings) as context:
        service = create_professor_service(context, settings)
        try:
            return await lookup(service, args.course, args.university, args.year)
        finally:
            await service.scraper.close()


def _cmd_lookup(args: argparse.Namespace, settings: Settings) -> int:
    """
    Show the highest-GPA professors for one course.
    """
    if not (args.course or "").strip():
        console.print("Please provide a course code.")
        return 1

    result = asyncio.run(_lookup(args, settings))
    if args.json:
        _print_json(result)
        return 0

    course = result["professor"].get("course", args.course)
    console.print(_professor_table(f"Professors for {course}", result["allProfessors"]))
    if result.get("note"):
        console.print(f"[dim]{result['note']}[/dim]")
    plan = result.get("graduationPlan")
    if plan:
        console.print(
            f"{plan['semestersRemaining']} semesters remaining, "
            f"expected graduation {plan['expectedGraduationYear']}"
        )
    return 0


async def _schedule(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    async with open_browser(settings) as context:
        search = WebSearch.from_settings(settings)
        llm = LLMClient.from_settings(settings)
        service = create_professor_service(context, settings, search=search, llm=llm)
        generator = ScheduleGenerator(service, llm, search=search, settings=settings)
        try:
            result = await generator.generate(" ".join(args.prompt), args.major, args.university)
        finally:
            await service.scraper.close()
        return result.to_dict()


def _cmd_schedule(args: argparse.Namespace, settings: Settings) -> int:
    """
    Generate a schedule for a free-text request.
    """
    prompt = " ".join(args.prompt).strip()
    if not prompt:
        console.print("Please provide a prompt.")
        return 1

    result = asyncio.run(_schedule(args, settings))
    if args.json:
        _print_json(result)
        return 0

    console.print(Markdown(result["response"]))
    if result["citations"]:
        console.print()
        console.print("Sources:")
        for c in result["citations"]:
            console.print(f"- {c['title']}: {c['url']}")
    return 0


def _cmd_plan(args: argparse.Namespace) -> int:
    """
    Print the remaining semesters for a student year.
    """
    plan = calculate_graduation_plan(args.year, include_summer=args.summer)
    console.print(
        f"{plan.current_year}: {plan.semesters_remaining} semesters remaining, "
        f"expected graduation {plan.expected_graduation_year}"
    )
    for term in plan.semester_plan:
        console.print(f"  {term}")
    return 0


def _cmd_codes(args: argparse.Namespace) -> int:
    codes = extract_course_codes(" ".join(args.text))
    if not codes:
        console.print("No course codes found.")
        return 0
    for code in codes:
        console.print(code)
    return 0


async def _catalog(args: argparse.Namespace, settings: Settings) -> ComprehensiveData:
    departments = [d.strip().upper() for d in args.departments if d.strip()] or None
    async with open_browser(settings) as context:
        scraper = CatalogScraper(context, settings, pool_size=args.pool_size)
        try:
            return await scraper.scrape_all(departments)
        finally:
            await scraper.close()


def _recommendation_table(title: str, recs: list[CourseRecommendation]) -> Table:
    table = Table(title=title)
    table.add_column("Course")
    table.add_column("Name")
    table.add_column("GPA", justify="right")
    table.add_column("Best professor")
    table.add_column("Difficulty")
    for r in recs:
        table.add_row(
            r.course_code,
            r.course_name,
            f"{r.average_gpa:.2f}",
            f"{r.best_professor} ({r.professor_gpa:.2f})",
            r.difficulty,
        )
    return table


def _cmd_catalog(args: argparse.Namespace, settings: Settings) -> int:
    """
    Scrape whole departments and summarize them.
    """
    data = asyncio.run(_catalog(args, settings))
    stats = department_stats(data)
    plan = None
    if args.major or args.required:
        plan = optimal_recommendations(data, args.major or "Undeclared", args.required, args.electives)

    if args.json:
        out: Dict[str, Any] = {
            "university": data.university,
            "lastUpdated": data.last_updated,
            "departments": data.departments,
            "totalCourses": data.total_courses,
            "totalProfessors": data.total_professors,
            "highestGpaCourses": [c.course_code for c in data.summary.get("highest_gpa_courses", [])],
            "departmentStats": stats,
        }
        if plan is not None:
            out["recommendations"] = {
                "required": [asdict(r) for r in plan.required],
                "electives": [asdict(r) for r in plan.electives],
                "analysis": plan.analysis,
            }
        _print_json(out)
        return 0

    console.print(f"{data.university}: {data.total_courses} courses, {data.total_professors} professors")
    table = Table(title="Departments")
    table.add_column("Department")
    table.add_column("Courses", justify="right")
    table.add_column("Avg GPA", justify="right")
    table.add_column("Easiest")
    table.add_column("Hardest")
    for dept, s in stats.items():
        table.add_row(
            dept,
            str(s["total_courses"]),
            f"{s['average_gpa']:.2f}",
            f"{s['highest_gpa_course']} ({s['max_gpa']:.2f})",
            f"{s['lowest_gpa_course']} ({s['min_gpa']:.2f})",
        )
    console.print(table)

    highest = [recommend(c) for c in data.summary.get("highest_gpa_courses", [])]
    if highest:
        console.print(_recommendation_table("Highest GPA courses", highest))

    if plan is not None:
        console.print(_recommendation_table("Required courses", plan.required))
        console.print(_recommendation_table("Recommended electives", plan.electives))
        console.print(plan.analysis)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="gpaplanner", description="GPA-ranked professors and AI schedules")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default from env, INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_lookup = sub.add_parser("lookup", help="Highest-GPA professors for a course")
    p_lookup.add_argument("course", type=str, help="Course code (e.g. 'CS 1301')")
    p_lookup.add_argument("--university", "-u", type=str, default=None)
    p_lookup.add_argument("--year", "-y", type=str, default=None, help="freshman/sophomore/junior/senior")
    p_lookup.add_argument("--json", action="store_true", help="Print raw JSON")

    p_schedule = sub.add_parser("schedule", help="Generate a class schedule")
    p_schedule.add_argument("prompt", nargs="+", help="Free-text request")
    p_schedule.add_argument("--major", "-m", type=str, default=None)
    p_schedule.add_argument("--university", "-u", type=str, default=None)
    p_schedule.add_argument("--json", action="store_true", help="Print raw JSON")

    p_plan = sub.add_parser("plan", help="Remaining semesters for a student year")
    p_plan.add_argument("year", type=str, help="freshman/sophomore/junior/senior")
    p_plan.add_argument("--summer", action="store_true", help="Include summer terms")

    p_codes = sub.add_parser("codes", help="Extract course codes from text")
    p_codes.add_argument("text", nargs="+", help="Any text")

    p_catalog = sub.add_parser("catalog", help="Scrape whole departments and summarize them")
    p_catalog.add_argument("departments", nargs="*", help="Department codes (default: all)")
    p_catalog.add_argument("--pool-size", type=int, default=DEFAULT_POOL_SIZE, help="Browser tabs used at once")
    p_catalog.add_argument("--major", "-m", type=str, default=None)
    p_catalog.add_argument("--required", "-r", nargs="+", default=[], metavar="CODE", help="Required course codes")
    p_catalog.add_argument("--electives", "-e", type=int, default=5, help="Number of electives to recommend")
    p_catalog.add_argument("--json", action="store_true", help="Print raw JSON")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except GpaPlannerError as exc:
        console.print(f"Configuration error: {exc}")
        raise SystemExit(2)
    setup_logging(args.log_level or settings.log_level)

    try:
        if args.command == "lookup":
            raise SystemExit(_cmd_lookup(args, settings))
        if args.command == "schedule":
            raise SystemExit(_cmd_schedule(args, settings))
        if args.command == "plan":
            raise SystemExit(_cmd_plan(args))
        if args.command == "codes":
            raise SystemExit(_cmd_codes(args))
        if args.command == "catalog":
            raise SystemExit(_cmd_catalog(args, settings))
    except RequestError as exc:
        if getattr(args, "json", False):
            _print_json(exc.to_dict())
        else:
            console.print(f"Error: {exc.message}")
        raise SystemExit(1)
    except GpaPlannerError as exc:
        logger.error("%s", exc)
        raise SystemExit(1)

    raise SystemExit(2)
