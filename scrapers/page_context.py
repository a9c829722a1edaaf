from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlparse

from config.settings import settings

_HASHTAG_PATH_RE = re.compile(r"^/hashtag/(.+?)(?:/|$)")


class InvalidRequestError(ValueError):
    """A start request that cannot be served (bad count or page)."""


@dataclass(frozen=True)
class PageContext:
    """Where a run was started from: a search page or a hashtag page."""

    url: str
    page_type: str  # "search" | "hashtag"
    query: str = ""
    context: str = "note"
    mode: str = "search"
    sort: str = ""
    hashtag: str = ""

    @property
    def hashtag_sort(self) -> str:
        return self.sort or "popular"

    @classmethod
    def from_url(cls, url: str) -> PageContext:
        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items() if v}
        page_type = "hashtag" if parsed.path.startswith("/hashtag/") else "search"
        return cls(
            url=url,
            page_type=page_type,
            query=params.get("q", ""),
            context=params.get("context") or "note",
            mode=params.get("mode") or "search",
            sort=params.get("sort", ""),
            hashtag=hashtag_name(parsed.path),
        )


def hashtag_name(path: str) -> str:
    """Decoded tag from ``/hashtag/<tag>``, or ``""`` on any other path."""
    match = _HASHTAG_PATH_RE.match(path)
    if not match:
        return ""
    return unquote(match.group(1))


def validate_start(count: object, url: str) -> PageContext:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidRequestError("count must be a positive integer")

    parsed = urlparse(url or "")
    expected = urlparse(settings.NOTE_BASE_URL).netloc
    if parsed.scheme not in ("http", "https") or parsed.netloc != expected:
        raise InvalidRequestError(f"not a {expected} page: {url!r}")

    context = PageContext.from_url(url)
    if context.page_type == "hashtag":
        if not context.hashtag:
            raise InvalidRequestError("hashtag page without a tag")
    elif not parsed.path.startswith("/search"):
        raise InvalidRequestError("open a search or hashtag results page")
    return context
