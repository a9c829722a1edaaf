"""Incremental scroll-and-collect over a live browser page."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from playwright.async_api import Page, async_playwright

from config.settings import settings
from core.models import Article
from scrapers.base import Pacer, ProgressFn
from scrapers.dom import collect_articles_from_dom, diagnose_dom

log = logging.getLogger(__name__)

SCROLL_SCRIPT = (
    "window.scrollTo({top: document.documentElement.scrollHeight, behavior: 'smooth'})"
)


class PageDriver(Protocol):
    async def content(self) -> str: ...

    async def scroll_to_bottom(self) -> None: ...


class BrowserPage:
    """``PageDriver`` over a Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def content(self) -> str:
        return await self._page.content()

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate(SCROLL_SCRIPT)


@asynccontextmanager
async def open_browser_page(url: str) -> AsyncIterator[BrowserPage]:
    """Headless Chromium on ``url`` with the configured note.com cookie."""
    headers = {"Cookie": settings.NOTE_COOKIE} if settings.NOTE_COOKIE else None
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=settings.BROWSER_HEADLESS)
        try:
            context = await browser.new_context(
                user_agent=settings.USER_AGENT,
                extra_http_headers=headers,
            )
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded")
            yield BrowserPage(page)
        finally:
            await browser.close()


async def auto_scroll_and_collect(
    page: PageDriver,
    target_count: int,
    *,
    progress: ProgressFn | None = None,
    pacer: Pacer | None = None,
    stagnation_limit: int | None = None,
) -> list[Article]:
    """Scroll until ``target_count`` articles are rendered or loading stalls.

    Returns at most ``target_count`` articles; on stagnation returns what was
    collected so far.
    """
    pacer = pacer or Pacer(settings.SCROLL_WAIT)
    limit = stagnation_limit or settings.SCROLL_STAGNATION_LIMIT
    last_count = 0
    stagnant = 0
    articles: list[Article] = []
    diagnosed = False

    while True:
        html = await page.content()
        if not diagnosed:
            diagnose_dom(html)
            diagnosed = True

        articles = collect_articles_from_dom(html)
        if progress:
            progress(min(len(articles), target_count))

        if len(articles) >= target_count:
            return articles[:target_count]

        if len(articles) <= last_count:
            stagnant += 1
            if stagnant >= limit:
                log.info(
                    "Loading stalled at %d articles (target %d)", len(articles), target_count
                )
                return articles
        else:
            stagnant = 0
        last_count = max(last_count, len(articles))

        await page.scroll_to_bottom()
        await pacer.pause()
