"""note.com internal JSON API harvesters (search and hashtag)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from config.settings import settings
from core.models import Article
from scrapers.base import Pacer, ProgressFn
from scrapers.locator import extract_articles
from scrapers.normalizer import normalize_item
from scrapers.page_context import PageContext

log = logging.getLogger(__name__)

JSON_HEADERS = {"Accept": "application/json"}


async def _get_json(client: httpx.AsyncClient, url: str, params: dict) -> Any:
    """Decoded JSON body; raises ``httpx.HTTPError`` or ``ValueError``."""
    resp = await client.get(url, params=params, headers=JSON_HEADERS)
    resp.raise_for_status()
    log.debug("API response (first 500 chars): %s", resp.text[:500])
    return resp.json()


def _log_shape(data: Any) -> None:
    if isinstance(data, dict):
        log.debug("Top-level keys: %s", list(data))
        if isinstance(data.get("data"), dict):
            log.debug("data keys: %s", list(data["data"]))


async def fetch_from_api(
    client: httpx.AsyncClient,
    context: PageContext,
    target_count: int,
    *,
    progress: ProgressFn | None = None,
    pacer: Pacer | None = None,
    page_size: int | None = None,
) -> list[Article] | None:
    """Page through ``/api/v3/searches``.

    Returns ``None`` when the API cannot be used (bad status, transport or
    decode error) or produced nothing, so the caller falls back to the DOM.
    """
    if not context.query:
        log.warning("No search query on %s", context.url)
        return None

    pacer = pacer or Pacer(settings.API_PAGE_DELAY)
    size = page_size or settings.SEARCH_PAGE_SIZE
    url = f"{settings.NOTE_BASE_URL.rstrip('/')}/api/v3/searches"
    articles: list[Article] = []
    start = 0

    log.info(
        "Search API: q=%r context=%s target=%d", context.query, context.context, target_count
    )

    while len(articles) < target_count:
        params: dict[str, Any] = {
            "q": context.query,
            "context": context.context,
            "mode": context.mode,
            "size": size,
            "start": start,
        }
        if context.sort:
            params["sort"] = context.sort

        try:
            data = await _get_json(client, url, params)
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("Search API failed at start=%d: %s", start, exc)
            return None

        _log_shape(data)
        page = extract_articles(data)
        if not page:
            log.info("Search API: no more results (start=%d)", start)
            break

        articles.extend(page[: target_count - len(articles)])
        if progress:
            progress(len(articles))
        log.info("Search API: %d/%d articles", len(articles), target_count)

        start += size
        if len(articles) < target_count:
            await pacer.pause()

    return articles or None


async def fetch_from_hashtag_api(
    client: httpx.AsyncClient,
    context: PageContext,
    target_count: int,
    *,
    progress: ProgressFn | None = None,
    pacer: Pacer | None = None,
) -> list[Article] | None:
    """Page through ``/api/v3/hashtags/<tag>/notes`` by page number."""
    if not context.hashtag:
        log.warning("No hashtag on %s", context.url)
        return None

    pacer = pacer or Pacer(settings.API_PAGE_DELAY)
    url = (
        f"{settings.NOTE_BASE_URL.rstrip('/')}/api/v3/hashtags/"
        f"{quote(context.hashtag, safe='')}/notes"
    )
    articles: list[Article] = []
    page = 1

    log.info(
        "Hashtag API: tag=%r sort=%s target=%d",
        context.hashtag, context.hashtag_sort, target_count,
    )

    while len(articles) < target_count:
        try:
            data = await _get_json(
                client, url, {"page": page, "sort": context.hashtag_sort}
            )
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("Hashtag API failed at page=%d: %s", page, exc)
            return None

        _log_shape(data)
        body = data.get("data") if isinstance(data, dict) else None
        notes = body.get("notes") if isinstance(body, dict) else None
        if not isinstance(notes, list) or not notes:
            log.info("Hashtag API: no more results (page=%d)", page)
            break

        for raw in notes:
            if len(articles) >= target_count:
                break
            article = normalize_item(raw)
            if article is not None:
                articles.append(article)

        if progress:
            progress(len(articles))
        log.info("Hashtag API: %d/%d articles", len(articles), target_count)

        if body.get("is_last_page"):
            log.info("Hashtag API: reached last page")
            break

        page += 1
        if len(articles) < target_count:
            await pacer.pause()

    return articles or None
