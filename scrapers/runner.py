from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

import httpx

from config.settings import settings
from core.models import Article, ScrapeResult
from data.database import get_session
from data.repositories import ScrapeLogRepository
from scrapers.base import Pacer, SleepFn, build_client
from scrapers.export import DirectorySaver, FileSaver, export_articles
from scrapers.page_context import PageContext, validate_start
from scrapers.rating import RatingEnricher
from scrapers.scroll import PageDriver, auto_scroll_and_collect, open_browser_page
from scrapers.search_api import fetch_from_api, fetch_from_hashtag_api
from scrapers.session import RunHandle, ScrapeSession

log = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]
PageOpener = Callable[[str], AbstractAsyncContextManager[PageDriver]]


class ScrapeRunner:
    """Runs one export at a time: harvest -> rate -> export."""

    def __init__(
        self,
        *,
        session: ScrapeSession | None = None,
        client_factory: ClientFactory = build_client,
        page_opener: PageOpener = open_browser_page,
        saver: FileSaver | None = None,
        sleep: SleepFn = asyncio.sleep,
        persist_runs: bool = True,
    ) -> None:
        self.session = session or ScrapeSession()
        self._client_factory = client_factory
        self._page_opener = page_opener
        self._saver = saver or DirectorySaver()
        self._sleep = sleep
        self._persist_runs = persist_runs
        self._task: asyncio.Task | None = None

    def start(self, count: int, page_url: str) -> dict:
        """Acknowledge a start request; the run itself continues in the background.

        Raises ``InvalidRequestError`` for a bad count or page.
        """
        context = validate_start(count, page_url)
        handle = self.session.begin(count)
        if handle is None:
            return {"status": "already_running"}

        self._task = asyncio.get_running_loop().create_task(
            self.run(handle, context, count)
        )
        return {"status": "started"}

    def get_progress(self) -> dict:
        return self.session.snapshot()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    def _pacer(self, delay: float) -> Pacer:
        return Pacer(delay, sleep=self._sleep)

    async def _collect_from_dom(
        self, handle: RunHandle, context: PageContext, count: int
    ) -> list[Article]:
        handle.update(message="Scrolling the page to collect articles...")
        async with self._page_opener(context.url) as page:
            return await auto_scroll_and_collect(
                page,
                count,
                progress=handle.update,
                pacer=self._pacer(settings.SCROLL_WAIT),
            )

    async def _harvest(
        self,
        client: httpx.AsyncClient,
        handle: RunHandle,
        context: PageContext,
        count: int,
    ) -> list[Article]:
        log.info("Page type: %s", context.page_type)
        pacer = self._pacer(settings.API_PAGE_DELAY)
        articles: list[Article] | None = None

        if context.page_type == "hashtag":
            # The hashtag API sorts differently from the rendered page, so the
            # page is the default source.
            if settings.HASHTAG_USE_API:
                handle.update(message="Fetching from the hashtag API...")
                articles = await fetch_from_hashtag_api(
                    client, context, count, progress=handle.update, pacer=pacer
                )
        else:
            handle.update(message="Fetching from the search API...")
            articles = await fetch_from_api(
                client, context, count, progress=handle.update, pacer=pacer
            )

        if not articles:
            log.info("Falling back to DOM collection for %s", context.url)
            articles = await self._collect_from_dom(handle, context, count)

        handle.update(len(articles), articles=articles)
        return articles

    async def run(self, handle: RunHandle, context: PageContext, count: int) -> ScrapeResult:
        started_at = datetime.now(timezone.utc)
        t0 = time.monotonic()
        articles: list[Article] = []
        export_path = ""
        error = ""

        try:
            async with self._client_factory() as client:
                articles = await self._harvest(client, handle, context, count)
                if not articles:
                    error = "No articles could be collected from this page."
                    handle.fail(error)
                else:
                    handle.update(message="Fetching ratings...")
                    enricher = RatingEnricher(
                        client,
                        pacer=self._pacer(settings.RATING_DELAY),
                        progress=handle.update,
                    )
                    articles = await enricher.fetch_all_like_ratings(articles)
                    export_path = export_articles(articles, self._saver)
                    handle.complete(
                        articles, f"Exported {len(articles)} articles to CSV."
                    )
        except Exception as exc:
            log.exception("Export run failed for %s", context.url)
            error = f"Error: {exc}"
            handle.fail(error)

        result = ScrapeResult(
            page_type=context.page_type,
            page_url=context.url,
            target_count=count,
            status=self.session.status.value,
            articles=articles,
            error=error,
            duration_seconds=time.monotonic() - t0,
            export_path=export_path,
        )
        log.info(
            "Finished run: %s | %d articles | %.1fs | %s",
            context.url,
            len(articles),
            result.duration_seconds,
            result.status,
        )
        if self._persist_runs:
            await self._persist(result, started_at)
        return result

    async def _persist(self, result: ScrapeResult, started_at: datetime) -> None:
        try:
            async with get_session() as db:
                await ScrapeLogRepository(db).log_run(result, started_at=started_at)
        except Exception as e:
            log.error("Failed to persist run for %s: %s", result.page_url, e)
