"""
Headless browser plumbing (Playwright, async API).

- open_browser(): launch Chromium and hand out one BrowserContext
- PagePool: a bounded set of reusable tabs shared by concurrent scrapes
- wait_for_first_selector(): wait for any of several candidate selectors

Timeouts are enforced by Playwright itself (per navigation and per
selector wait), not by the callers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from playwright.async_api import BrowserContext, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gpaplanner.config import Settings


logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

LAUNCH_ARGS = [
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--no-sandbox",
]

DEFAULT_POOL_SIZE = 5


@asynccontextmanager
async def open_browser(settings: Settings) -> AsyncIterator[BrowserContext]:
    """
    Launch Chromium and yield a configured BrowserContext.

    The browser is always closed on exit, also when the body raises.
    """
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=settings.headless, args=LAUNCH_ARGS)
        logger.debug("browser launched (headless=%s)", settings.headless)
        try:
            context = await browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1280, "height": 720},
            )
            context.set_default_navigation_timeout(settings.navigation_timeout_ms)
            context.set_default_timeout(settings.selector_timeout_ms)
            yield context
        finally:
            await browser.close()
            logger.debug("browser closed")


class PagePool:
    """
    At most `size` open tabs; callers wait when all tabs are busy.
    """

    def __init__(self, context: BrowserContext, size: int = DEFAULT_POOL_SIZE) -> None:
        if size < 1:
            raise ValueError("size must be >= 1")
        self._context = context
        self.size = size
        self._slots = asyncio.Semaphore(size)
        self._idle: List[Page] = []
        self._pages: List[Page] = []

    async def _acquire(self) -> Page:
        await self._slots.acquire()
        try:
            while self._idle:
                page = self._idle.pop()
                if not page.is_closed():
                    return page
                self._forget(page)
            page = await self._context.new_page()
        except Exception:
            self._slots.release()
            raise
        self._pages.append(page)
        return page

    def _forget(self, page: Page) -> None:
        if page in self._pages:
            self._pages.remove(page)

    def _release(self, page: Page) -> None:
        # a crashed tab is dropped; its slot is freed either way
        if page.is_closed():
            self._forget(page)
        else:
            self._idle.append(page)
        self._slots.release()

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        page = await self._acquire()
        try:
            yield page
        finally:
            self._release(page)

    async def close(self) -> None:
        for page in self._pages:
            if not page.is_closed():
                await page.close()
        self._pages.clear()
        self._idle.clear()


async def wait_for_first_selector(page: Page, selectors: Sequence[str], timeout_ms: int) -> Optional[str]:
    """
    Wait until any candidate selector matches, then return the first one
    (in priority order) present on the page. None if nothing appeared in time.
    """
    if not selectors:
        return None
    try:
        await page.wait_for_selector(", ".join(selectors), timeout=timeout_ms)
    except PlaywrightTimeoutError:
        logger.info("none of %d selectors appeared within %d ms on %s", len(selectors), timeout_ms, page.url)
        return None

    for selector in selectors:
        if await page.query_selector(selector) is not None:
            return selector
    return None
