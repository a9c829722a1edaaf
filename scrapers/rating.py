"""Per-article 高評価 (high-rating) count lookup.

note.com shows two different approval counters: スキ (``like_count``, already
on every search result) and 高評価, which only appears on the article itself.
The two are never interchangeable, so nothing here may read the スキ fields.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import Any

import httpx
from scrapling.parser import Selector

from config.settings import settings
from core.models import Article
from scrapers.base import Pacer, ProgressFn
from scrapers.normalizer import to_number

log = logging.getLogger(__name__)

RATING_FIELDS = (
    "rating_count", "ratingCount",
    "recommend_count", "recommendCount",
    "evaluation_count", "evaluationCount",
    "high_rating_count", "highRatingCount",
    "buyer_like_count", "buyerLikeCount",
    "purchase_like_count", "purchaseLikeCount",
)
MAX_SEARCH_DEPTH = 3
NEXT_DATA_SELECTOR = "script#__NEXT_DATA__"

_NOTE_KEY_RE = re.compile(r"/n/([a-zA-Z0-9]+)")
_RATING_TEXT_RE = re.compile(r"(\d+)\s*人が高評価")
_NUXT_RE = re.compile(r"__NUXT__[^=]*=\s*(\{[\s\S]*?\});?\s*</script>")
_RATING_JSON_RE = re.compile(
    r'"(?:%s)"\s*:\s*(\d+)' % "|".join(re.escape(f) for f in RATING_FIELDS)
)


def note_key(url: str) -> str | None:
    match = _NOTE_KEY_RE.search(url or "")
    return match.group(1) if match else None


def _positive_rating(obj: Any) -> int:
    if not isinstance(obj, dict):
        return 0
    for name in RATING_FIELDS:
        num = to_number(obj.get(name))
        if num is not None and num > 0:
            return int(num)
    return 0


def find_rating_in_object(obj: Any, depth: int = 0) -> int:
    """Shallow recursive search for a rating field, at most 3 levels down."""
    if not isinstance(obj, dict) or depth > MAX_SEARCH_DEPTH:
        return 0
    found = _positive_rating(obj)
    if found:
        return found
    for value in obj.values():
        if isinstance(value, dict):
            found = find_rating_in_object(value, depth + 1)
            if found:
                return found
    return 0


def rating_from_html(html: str) -> int:
    """Rating from an article page: visible text, then embedded JSON."""
    if not html or not html.strip():
        return 0

    match = _RATING_TEXT_RE.search(html)
    if match:
        return int(match.group(1))

    scripts = Selector(html).css(NEXT_DATA_SELECTOR)
    if scripts:
        try:
            found = find_rating_in_object(json.loads(str(scripts[0].text)))
        except ValueError:
            found = 0
        if found:
            return found

    match = _NUXT_RE.search(html)
    if match:
        inner = _RATING_JSON_RE.search(match.group(1))
        if inner:
            return int(inner.group(1))

    match = _RATING_JSON_RE.search(html)
    return int(match.group(1)) if match else 0


class RatingEnricher:
    """Resolves 高評価 counts for one run's articles, one request at a time."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        pacer: Pacer | None = None,
        progress: ProgressFn | None = None,
        base_url: str | None = None,
    ) -> None:
        self._client = client
        self._pacer = pacer or Pacer(settings.RATING_DELAY)
        self._progress = progress
        self._base_url = (base_url or settings.NOTE_BASE_URL).rstrip("/")
        # Each diagnostic is emitted once per run.
        self._logged: set[str] = set()

    def _log_once(self, kind: str, level: int, msg: str, *args: Any) -> None:
        if kind in self._logged:
            return
        self._logged.add(kind)
        log.log(level, msg, *args)

    async def _from_api(self, key: str) -> int:
        """Rating from the detail API; raises ``httpx.TransportError``."""
        resp = await self._client.get(
            f"{self._base_url}/api/v3/notes/{key}",
            headers={"Accept": "application/json"},
        )
        if not resp.is_success:
            log.debug("Detail API %s for %s", resp.status_code, key)
            return 0
        try:
            body = resp.json()
        except ValueError as exc:
            log.debug("Detail API returned non-JSON for %s: %s", key, exc)
            return 0

        note_data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(note_data, dict):
            note_data = body
        inner = note_data.get("note") if isinstance(note_data, dict) else None
        if not isinstance(inner, dict):
            inner = note_data

        for view in (inner, note_data, body):
            found = _positive_rating(view)
            if found:
                log.debug("API rating %d (%s)", found, key)
                return found

        self._log_once(
            "api_fields",
            logging.INFO,
            "Detail API has no rating field (keys: %s); trying article HTML",
            sorted(note_data) if isinstance(note_data, dict) else type(note_data).__name__,
        )
        return 0

    async def _from_html(self, url: str) -> int:
        resp = await self._client.get(url)
        if not resp.is_success:
            return 0
        return rating_from_html(resp.text)

    async def fetch_like_rating(self, article_url: str) -> int:
        """高評価 count for one article; 0 whenever it cannot be resolved."""
        key = note_key(article_url)
        if not key:
            return 0

        try:
            try:
                found = await self._from_api(key)
            except httpx.TransportError as exc:
                # Same origin as the article page, so skip the HTML fetch too.
                self._log_once(
                    "api_network", logging.WARNING,
                    "Detail API unreachable (further errors suppressed): %s", exc,
                )
                return 0
            if found:
                return found

            try:
                found = await self._from_html(article_url)
            except httpx.HTTPError as exc:
                self._log_once(
                    "html_network", logging.WARNING,
                    "Article HTML fetch failed (further errors suppressed): %s", exc,
                )
                return 0
            if found:
                log.debug("HTML rating %d (%s)", found, key)
            return found
        except Exception as exc:
            log.warning("Rating lookup failed for %s: %s", article_url, exc)
            return 0

    async def fetch_all_like_ratings(self, articles: list[Article]) -> list[Article]:
        """New records with ``like_rating`` set, in the original order."""
        log.info("Fetching ratings for %d articles", len(articles))
        total = len(articles)
        results: list[Article] = []

        for index, article in enumerate(articles):
            rating = await self.fetch_like_rating(article.url)
            results.append(dataclasses.replace(article, like_rating=rating))

            if self._progress:
                self._progress(index + 1, f"Fetching ratings... {index + 1} / {total}")
            log.info("Rating %d/%d: %s -> %d", index + 1, total, article.title[:30], rating)

            if index < total - 1:
                await self._pacer.pause()

        return results
