"""Locate the list of raw note records inside an arbitrarily shaped API payload."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from typing import Any

from core.models import Article
from scrapers.normalizer import normalize_item

log = logging.getLogger(__name__)

# Known response shapes, most specific first.  New shapes are additions here.
CANDIDATE_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "notes", "contents"),
    ("data", "notes", "items"),
    ("data", "notes"),
    ("data", "contents"),
    ("data", "search_results"),
    ("data", "items"),
    ("notes",),
    ("contents",),
    ("items",),
)

Extractor = Callable[[dict], Iterator[Any]]


def _path(keys: tuple[str, ...]) -> Extractor:
    def extract(payload: dict) -> Iterator[Any]:
        current: Any = payload
        for key in keys:
            if not isinstance(current, dict):
                return
            current = current.get(key)
        yield current

    extract.__name__ = ".".join(keys)
    return extract


def _data_itself(payload: dict) -> Iterator[Any]:
    yield payload.get("data")


def _data_properties(payload: dict) -> Iterator[Any]:
    data = payload.get("data")
    if isinstance(data, dict):
        yield from data.values()


def _top_level_properties(payload: dict) -> Iterator[Any]:
    for key, value in payload.items():
        if key != "data":
            yield value


EXTRACTORS: tuple[Extractor, ...] = (
    *(_path(keys) for keys in CANDIDATE_PATHS),
    _data_itself,
    _data_properties,
    _top_level_properties,
)


def _is_item_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and isinstance(value[0], dict)


def find_items(payload: Any) -> list:
    """Return the first plausible list of item records, or ``[]``."""
    if not isinstance(payload, dict):
        return []

    for extractor in EXTRACTORS:
        for candidate in extractor(payload):
            if _is_item_list(candidate):
                log.debug(
                    "Item list found via %s: %d records",
                    getattr(extractor, "__name__", "extractor"),
                    len(candidate),
                )
                return candidate

    log.warning(
        "No item list in payload: %s",
        json.dumps(payload, ensure_ascii=False, default=str)[:1000],
    )
    return []


def extract_articles(payload: Any) -> list[Article]:
    """Locate and normalise every usable article in an API payload."""
    articles: list[Article] = []
    for index, raw in enumerate(find_items(payload)):
        try:
            article = normalize_item(raw)
        except Exception as exc:
            log.warning("Skipping item %d: %s", index, exc)
            continue
        if article is not None:
            articles.append(article)
    return articles
