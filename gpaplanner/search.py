"""
Web search adapter (Google Custom Search JSON API).

Only maps a query to a list of SearchResult, retrying failed requests.
All decisions about what to search for live in the callers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import requests

from gpaplanner.config import Settings
from gpaplanner.errors import SearchError
from gpaplanner.model import SearchResult
from gpaplanner.retry import SleepFn, retry_async


logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


class WebSearch:
    def __init__(
        self,
        api_key: Optional[str],
        cx: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.cx = cx
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebSearch":
        return cls(
            settings.google_api_key,
            settings.google_search_cx,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.cx)

    def search_sync(self, query: str, num_results: int = 5) -> List[SearchResult]:
        """
        Run one query. Raises SearchError when not configured or on HTTP errors.
        """
        if not self.configured:
            raise SearchError("web search is not configured (GOOGLE_API_KEY / GOOGLE_SEARCH_CX)")

        params = {"q": query, "key": self.api_key, "cx": self.cx, "num": max(1, min(num_results, 10))}
        logger.info("search: %r", query)
        try:
            resp = self.session.get(SEARCH_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise SearchError(f"search for {query!r} failed: {exc}") from exc

        items = data.get("items") or []
        results: List[SearchResult] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            results.append(
                SearchResult(
                    name=str(item.get("title", "") or ""),
                    snippet=str(item.get("snippet", "") or ""),
                    url=str(item.get("link", "") or ""),
                )
            )
        logger.info("search: %d results for %r", len(results), query)
        return results

    async def search(self, query: str, num_results: int = 5) -> List[SearchResult]:
        """
        search_sync() in a worker thread, retried with backoff on SearchError.
        """
        if not self.configured:
            raise SearchError("web search is not configured (GOOGLE_API_KEY / GOOGLE_SEARCH_CX)")
        return await retry_async(
            lambda: asyncio.to_thread(self.search_sync, query, num_results),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self._sleep,
            label=f"search {query!r}",
        )
