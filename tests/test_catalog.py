"""
Tests for the comprehensive catalog scrape.

Parsers run on small HTML fixtures. CatalogScraper runs against a fake
browser context whose pages serve fixture HTML by URL.
"""

import unittest

from bs4 import BeautifulSoup

from gpaplanner.catalog import (
    CatalogScraper,
    build_course,
    course_average_gpa,
    parse_course_links,
    parse_course_title,
    parse_department_codes,
    parse_instructor_links,
    parse_professor_page,
    parse_sections,
    summarize_courses,
)
from gpaplanner.config import Settings
from gpaplanner.errors import ScrapeError
from gpaplanner.model import ProfessorAggregate, SectionData


BASE = "https://critique.example.edu"

START_HTML = """
<a href="/course/CS">Computer Science</a>
<a href="/course/MATH">Mathematics</a>
<a href="/course?courseID=CS%201301">CS 1301</a>
<a href="/about">About</a>
"""

DEPARTMENT_HTML = """
<a href="/course?courseID=CS%201301">CS 1301</a>
<a href="/course?courseID=CS%201331">CS 1331</a>
<a href="/course?courseID=CS%201301">again</a>
<a href="/course?courseID=MATH%201552">MATH 1552</a>
"""

COURSE_HTML = """
<h1>CS 1301 - Intro to Computing</h1>
<a href="/instructor/1">Jane Doe</a>
<a href="/instructor/2">Bo Chen</a>
<a href="/prof?profID=Lee%2C%20Ann"></a>
<a href="/instructor/1">Jane Doe</a>
"""

PROFESSOR_HTML = """
<div class="gpa">Average GPA 3.20</div>
<table>
  <tr><th>Semester</th><th>GPA</th><th>Students</th></tr>
  <tr><td>Fall 2024</td><td>3.00</td><td>100</td></tr>
  <tr><td>Spring 2025</td><td>4.00</td><td>300</td><td>B</td></tr>
  <tr><td>Summer 2025</td><td>n/a</td><td>20</td></tr>
</table>
"""

HEADLINE_ONLY_HTML = '<div class="gpa-value">3.55</div>'


class FakePage:
    def __init__(self, pages: dict, failures: dict | None = None) -> None:
        self.pages = pages
        # url -> number of loads that still fail before it works
        self.failures = failures if failures is not None else {}
        self.url = "about:blank"
        self.closed = False

    async def goto(self, url, **kwargs):
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise RuntimeError(f"timeout {url}")
        if url not in self.pages:
            raise RuntimeError(f"404 {url}")
        self.url = url

    async def wait_for_selector(self, selector, timeout=None):
        return object()

    async def query_selector(self, selector):
        return object()

    async def content(self) -> str:
        return self.pages[self.url]

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, pages: dict, failures: dict | None = None) -> None:
        self.pages = pages
        self.failures = failures if failures is not None else {}
        self.opened: list[FakePage] = []

    async def new_page(self) -> FakePage:
        page = FakePage(self.pages, self.failures)
        self.opened.append(page)
        return page


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def section(gpa: float, students: int) -> SectionData:
    return SectionData(semester="Fall 2024", year="2024", gpa=gpa, students=students)


def professor(name: str, *sections: SectionData) -> ProfessorAggregate:
    total = sum(s.students for s in sections)
    avg = sum(s.gpa * s.students for s in sections) / total if total else 0.0
    return ProfessorAggregate(name=name, avg_gpa=avg, sections=list(sections), total_students=total, url="")


class TestParsers(unittest.TestCase):
    def test_department_codes(self) -> None:
        self.assertEqual(parse_department_codes(START_HTML), ["CS", "MATH"])

    def test_course_links(self) -> None:
        links = parse_course_links(DEPARTMENT_HTML, "CS", BASE)
        self.assertEqual(
            links,
            [
                ("CS 1301", f"{BASE}/course?courseID=CS%201301"),
                ("CS 1331", f"{BASE}/course?courseID=CS%201331"),
            ],
        )

    def test_course_title(self) -> None:
        self.assertEqual(parse_course_title(COURSE_HTML), ("CS 1301", "Intro to Computing"))
        self.assertEqual(parse_course_title("<h1>Welcome</h1>"), (None, ""))

    def test_instructor_links(self) -> None:
        links = parse_instructor_links(COURSE_HTML, BASE)
        self.assertEqual(
            links,
            [
                ("Jane Doe", f"{BASE}/instructor/1"),
                ("Bo Chen", f"{BASE}/instructor/2"),
                ("Lee, Ann", f"{BASE}/prof?profID=Lee%2C%20Ann"),
            ],
        )

    def test_sections_skip_unreadable_rows(self) -> None:
        sections = parse_sections(BeautifulSoup(PROFESSOR_HTML, "html.parser"))
        self.assertEqual([(s.semester, s.gpa, s.students) for s in sections], [("Fall 2024", 3.0, 100), ("Spring 2025", 4.0, 300)])
        self.assertEqual(sections[0].year, "2024")
        self.assertEqual(sections[0].section, "A")
        self.assertEqual(sections[1].section, "B")

    def test_professor_page_weighted_average(self) -> None:
        prof = parse_professor_page(PROFESSOR_HTML, "Jane Doe", f"{BASE}/instructor/1")
        self.assertAlmostEqual(prof.avg_gpa, 3.75)
        self.assertEqual(prof.total_students, 400)

    def test_professor_page_headline_only(self) -> None:
        prof = parse_professor_page(HEADLINE_ONLY_HTML, "Bo Chen", "")
        self.assertEqual(prof.avg_gpa, 3.55)
        self.assertEqual(prof.sections, [])
        self.assertEqual(prof.total_students, 0)

    def test_professor_page_without_data(self) -> None:
        self.assertEqual(parse_professor_page("<p>nothing</p>", "X", "").avg_gpa, 0.0)


class TestAggregation(unittest.TestCase):
    def test_course_average_is_student_weighted(self) -> None:
        profs = [professor("A", section(4.0, 10)), professor("B", section(2.0, 30))]
        # mean of professor averages would be 3.0
        self.assertAlmostEqual(course_average_gpa(profs), 2.5)
        self.assertEqual(course_average_gpa([]), 0.0)

    def test_build_course(self) -> None:
        course = build_course("CS 1301", "Intro", "CS", [professor("A", section(3.0, 10), section(4.0, 10))], "u")
        self.assertEqual(course.total_sections, 2)
        self.assertEqual(course.total_students, 20)
        self.assertAlmostEqual(course.average_gpa, 3.5)

    def test_summary(self) -> None:
        courses = [
            build_course("CS 1301", "Intro", "CS", [professor("A", section(3.8, 500))], ""),
            build_course("CS 2110", "Org", "CS", [professor("B", section(2.6, 50))], ""),
            build_course("MATH 1552", "Calc", "MATH", [professor("C", section(3.0, 900))], ""),
        ]
        summary = summarize_courses(courses)

        self.assertEqual([c.course_code for c in summary["highest_gpa_courses"]], ["CS 1301", "MATH 1552", "CS 2110"])
        self.assertEqual(summary["lowest_gpa_courses"][-1].course_code, "CS 2110")
        self.assertEqual(summary["most_popular_courses"][0].course_code, "MATH 1552")
        self.assertAlmostEqual(summary["department_averages"]["CS"], 3.2)
        self.assertEqual(summarize_courses([])["lowest_gpa_courses"], [])


class TestCatalogScraper(unittest.IsolatedAsyncioTestCase):
    def pages(self) -> dict:
        return {
            f"{BASE}/": START_HTML,
            f"{BASE}/course/CS": DEPARTMENT_HTML,
            f"{BASE}/course?courseID=CS%201301": COURSE_HTML,
            f"{BASE}/course?courseID=CS%201331": "<h1>CS 1331 - OOP</h1>",
            f"{BASE}/instructor/1": PROFESSOR_HTML,
            f"{BASE}/instructor/2": HEADLINE_ONLY_HTML,
            # Lee's page is missing and must be skipped
        }

    def scraper(self, context: FakeContext, sleep: FakeSleep, pool_size: int = 2) -> CatalogScraper:
        settings = Settings(max_retries=2)
        return CatalogScraper(context, settings, pool_size=pool_size, batch_delay=1.0, base_url=BASE, sleep=sleep)

    async def test_course_in_batches(self) -> None:
        context, sleep = FakeContext(self.pages()), FakeSleep()
        scraper = self.scraper(context, sleep)

        course = await scraper.scrape_course(f"{BASE}/course?courseID=CS%201301", "CS")

        assert course is not None
        self.assertEqual(course.course_code, "CS 1301")
        self.assertEqual(course.course_name, "Intro to Computing")
        self.assertEqual([p.name for p in course.professors], ["Jane Doe", "Bo Chen"])
        self.assertAlmostEqual(course.average_gpa, 3.75)
        # 3 instructors, 2 tabs: one pause between the two batches
        self.assertEqual(sleep.delays, [1.0])
        self.assertLessEqual(len(context.opened), 2)

    async def test_scrape_all(self) -> None:
        context, sleep = FakeContext(self.pages()), FakeSleep()
        scraper = self.scraper(context, sleep)

        data = await scraper.scrape_all()
        await scraper.close()

        self.assertEqual(data.departments, ["CS", "MATH"])
        self.assertEqual([c.course_code for c in data.courses], ["CS 1301", "CS 1331"])
        self.assertEqual(data.total_professors, 2)
        self.assertIn("department_averages", data.summary)
        self.assertTrue(all(p.closed for p in context.opened))

    async def test_failing_department_is_retried(self) -> None:
        failures = {f"{BASE}/course/CS": 1}
        context, sleep = FakeContext(self.pages(), failures), FakeSleep()
        scraper = self.scraper(context, sleep)

        data = await scraper.scrape_all(["CS"])
        await scraper.close()

        self.assertEqual([c.course_code for c in data.courses], ["CS 1301", "CS 1331"])
        self.assertEqual(failures[f"{BASE}/course/CS"], 0)
        # backoff before the second attempt, then one pause between instructor batches
        self.assertEqual(sleep.delays, [1.0, 1.0])

    async def test_department_list_is_retried(self) -> None:
        pages = self.pages()
        pages[f"{BASE}/"] = "<p>maintenance</p>"
        scraper = self.scraper(FakeContext(pages), FakeSleep())

        with self.assertRaises(ScrapeError):
            await scraper.scrape_departments()


if __name__ == "__main__":
    unittest.main()
