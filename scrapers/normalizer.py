"""Turn heterogeneous note records into canonical ``Article`` values.

The upstream API has no fixed schema: the same value shows up under several
names, sometimes on a nested ``note`` object and sometimes on the outer
record.  Every field is resolved by walking an ordered table of candidate
names over the inner view first and the outer record second.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any
from urllib.parse import urlparse

from config.settings import settings
from core.models import Article

INNER_KEY = "note"

TITLE_FIELDS = ("name", "title", "headline")
LIKE_FIELDS = (
    "like_count", "likeCount", "likes_count", "likesCount",
    "sp_count", "spCount", "suki_count", "sukiCount",
)
PRICE_FIELDS = ("price", "amount", "body_price", "bodyPrice")
URL_FIELDS = ("note_url", "noteUrl", "url")
KEY_FIELDS = ("key", "slug")
USER_KEY = "user"
USER_NAME_FIELDS = ("nickname", "name", "urlname", "display_name")
CREATOR_FIELDS = ("creator_name", "creatorName", "author_name", "authorName")

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_NUMBER_NOISE_RE = re.compile(r"[,、\s]")
_DIGITS_RE = re.compile(r"(\d+)")


# ── coercion ─────────────────────────────────────────────────────────


def to_number(value: Any) -> float | None:
    """Standard string-to-number parsing; ``None`` when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return num if math.isfinite(num) else None


def to_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        text = str(value)
        return text if text.strip() else None
    return None


def first_present(
    views: Sequence[dict],
    fields: Iterable[str],
    coerce: Callable[[Any], Any],
) -> Any:
    """First value, by view then by field priority, that survives ``coerce``."""
    fields = tuple(fields)
    for view in views:
        for name in fields:
            value = coerce(view.get(name))
            if value is not None:
                return value
    return None


def extract_number(text: Any) -> int:
    """First run of digits in free text (``"スキ 1,234"`` -> 1234)."""
    if not text:
        return 0
    match = _DIGITS_RE.search(_NUMBER_NOISE_RE.sub("", str(text)))
    return int(match.group(1)) if match else 0


def extract_creator_from_url(url: str, base_url: str | None = None) -> str:
    """The ``urlname`` segment of ``https://note.com/<urlname>/n/<key>``."""
    host = urlparse(base_url or settings.NOTE_BASE_URL).netloc
    match = re.search(rf"{re.escape(host)}/([^/]+)/", str(url or ""))
    return match.group(1) if match else ""


def absolute_url(href: str, base_url: str | None = None) -> str:
    if _SCHEME_RE.match(href):
        return href
    base = (base_url or settings.NOTE_BASE_URL).rstrip("/")
    return f"{base}{href}" if href.startswith("/") else f"{base}/{href}"


# ── field resolution ─────────────────────────────────────────────────


def _views(item: dict) -> tuple[dict, ...]:
    inner = item.get(INNER_KEY)
    if isinstance(inner, dict):
        return inner, item
    return (item,)


def _resolve_url(views: Sequence[dict], base_url: str) -> str:
    for view in views:
        for name in URL_FIELDS:
            value = view.get(name)
            if isinstance(value, str) and _SCHEME_RE.match(value):
                return value

    key = first_present(views, KEY_FIELDS, to_text)
    urlname = None
    for view in views:
        user = view.get(USER_KEY)
        if isinstance(user, dict):
            urlname = to_text(user.get("urlname"))
            if urlname:
                break
    if not urlname:
        urlname = first_present(views, ("urlname",), to_text)
    if key and urlname:
        return f"{base_url.rstrip('/')}/{urlname}/n/{key}"

    href = first_present(views, ("href",), to_text)
    if href:
        return absolute_url(href, base_url)
    return ""


def _resolve_creator(views: Sequence[dict]) -> str:
    for view in views:
        user = view.get(USER_KEY)
        if isinstance(user, dict):
            name = first_present((user,), USER_NAME_FIELDS, to_text)
            if name:
                return name
    return first_present(views, CREATOR_FIELDS, to_text) or ""


def _non_negative(num: float | None) -> int:
    return max(0, int(num)) if num is not None else 0


def normalize_item(item: Any, base_url: str | None = None) -> Article | None:
    """Canonical article for one raw record, or ``None`` if it has no title."""
    if not isinstance(item, dict):
        return None

    views = _views(item)
    title = first_present(views, TITLE_FIELDS, to_text)
    if not title:
        return None

    return Article(
        title=title,
        like_count=_non_negative(first_present(views, LIKE_FIELDS, to_number)),
        price=_non_negative(first_present(views, PRICE_FIELDS, to_number)),
        url=_resolve_url(views, base_url or settings.NOTE_BASE_URL),
        creator=_resolve_creator(views),
    )
