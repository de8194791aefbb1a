"""
In-memory cache of ranked professor records per (university, course).

The cache is an explicit object handed to the code that needs it, with a
time-to-live and a bounded size (least recently used entries are evicted).
There is no locking: two concurrent misses for the same key both scrape,
and the last write wins.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

from gpaplanner.model import ProfessorRecord


logger = logging.getLogger(__name__)


def _normalize(text: str) -> str:
    return "".join((text or "").split()).lower()


def make_key(university: str, course: str) -> str:
    """
    'Georgia Tech', 'CS 1301' -> 'georgiatech|cs1301'
    """
    return f"{_normalize(university)}|{_normalize(course)}"


class ProfessorCache:
    def __init__(
        self,
        ttl_seconds: Optional[float] = 3600.0,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        # key -> (stored_at, records); order = recency of use
        self._entries: "OrderedDict[str, Tuple[float, List[ProfessorRecord]]]" = OrderedDict()

    def _expired(self, stored_at: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - stored_at >= self.ttl_seconds

    def get(self, university: str, course: str) -> Optional[List[ProfessorRecord]]:
        """
        Return the cached list (the same object on every hit) or None.
        """
        key = make_key(university, course)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, records = entry
        if self._expired(stored_at):
            logger.debug("cache expired: %s", key)
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        logger.debug("cache hit: %s (%d records)", key, len(records))
        return records

    def set(self, university: str, course: str, records: List[ProfessorRecord]) -> None:
        """
        Store records unconditionally, replacing any previous entry.
        """
        key = make_key(university, course)
        self._entries[key] = (self._clock(), records)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("cache evicted: %s", evicted)

    def invalidate(self, university: str, course: str) -> bool:
        return self._entries.pop(make_key(university, course), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item: Tuple[str, str]) -> bool:
        # a membership test must not count as a use
        entry = self._entries.get(make_key(*item))
        return entry is not None and not self._expired(entry[0])
