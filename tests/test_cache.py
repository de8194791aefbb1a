"""
Unit tests for the professor cache.

Cache contract:
- keys are (university, course), compared without case and whitespace
- a hit returns the very same list object that was stored
- entries expire after ttl_seconds; the least recently used entry is evicted first
- "in" checks never count as a use and never remove anything
"""

import unittest

from gpaplanner.cache import ProfessorCache, make_key
from gpaplanner.model import ProfessorRecord, Source


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def records(name: str = "Jane Doe") -> list[ProfessorRecord]:
    return [ProfessorRecord(name=name, course="CS 1301", source=Source.COURSE_EVAL, avg_gpa=3.5)]


class TestProfessorCache(unittest.TestCase):
    def test_key_normalization(self) -> None:
        self.assertEqual(make_key("Georgia Tech", "CS 1301"), "georgiatech|cs1301")
        self.assertEqual(make_key(" georgia  tech", "cs1301"), make_key("Georgia Tech", "CS 1301"))

    def test_hit_returns_same_object(self) -> None:
        cache = ProfessorCache()
        stored = records()
        cache.set("Georgia Tech", "CS 1301", stored)

        self.assertIs(cache.get("georgia tech", "cs1301"), stored)
        self.assertIn(("Georgia Tech", "CS 1301"), cache)

    def test_miss(self) -> None:
        cache = ProfessorCache()
        self.assertIsNone(cache.get("Georgia Tech", "CS 1301"))

    def test_set_replaces(self) -> None:
        cache = ProfessorCache()
        cache.set("Georgia Tech", "CS 1301", records("A"))
        newer = records("B")
        cache.set("Georgia Tech", "CS 1301", newer)

        self.assertIs(cache.get("Georgia Tech", "CS 1301"), newer)
        self.assertEqual(len(cache), 1)

    def test_ttl_expiry(self) -> None:
        clock = FakeClock()
        cache = ProfessorCache(ttl_seconds=60, clock=clock)
        cache.set("Georgia Tech", "CS 1301", records())

        clock.now = 59
        self.assertIsNotNone(cache.get("Georgia Tech", "CS 1301"))
        clock.now = 60
        self.assertIsNone(cache.get("Georgia Tech", "CS 1301"))
        self.assertEqual(len(cache), 0)

    def test_no_ttl_never_expires(self) -> None:
        clock = FakeClock()
        cache = ProfessorCache(ttl_seconds=None, clock=clock)
        cache.set("Georgia Tech", "CS 1301", records())
        clock.now = 10**9
        self.assertIsNotNone(cache.get("Georgia Tech", "CS 1301"))

    def test_lru_eviction(self) -> None:
        cache = ProfessorCache(max_entries=2)
        cache.set("GT", "CS 1301", records())
        cache.set("GT", "CS 1331", records())
        # touch CS 1301 so CS 1331 becomes least recently used
        cache.get("GT", "CS 1301")
        cache.set("GT", "CS 1332", records())

        self.assertIsNotNone(cache.get("GT", "CS 1301"))
        self.assertIsNone(cache.get("GT", "CS 1331"))
        self.assertIsNotNone(cache.get("GT", "CS 1332"))

    def test_membership_does_not_refresh_recency(self) -> None:
        cache = ProfessorCache(max_entries=2)
        cache.set("GT", "CS 1301", records())
        cache.set("GT", "CS 1331", records())
        self.assertIn(("GT", "CS 1301"), cache)
        cache.set("GT", "CS 1332", records())

        # CS 1301 stays least recently used and is the one evicted
        self.assertNotIn(("GT", "CS 1301"), cache)
        self.assertIn(("GT", "CS 1331"), cache)

    def test_membership_respects_ttl_without_evicting(self) -> None:
        clock = FakeClock()
        cache = ProfessorCache(ttl_seconds=60, clock=clock)
        cache.set("GT", "CS 1301", records())
        clock.now = 60

        self.assertNotIn(("GT", "CS 1301"), cache)
        self.assertEqual(len(cache), 1)

    def test_invalidate_and_clear(self) -> None:
        cache = ProfessorCache()
        cache.set("GT", "CS 1301", records())
        cache.set("GT", "CS 1331", records())

        self.assertTrue(cache.invalidate("GT", "CS 1301"))
        self.assertFalse(cache.invalidate("GT", "CS 1301"))
        cache.clear()
        self.assertEqual(len(cache), 0)


if __name__ == "__main__":
    unittest.main()
