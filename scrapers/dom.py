"""Best-effort article harvest from a rendered search/hashtag page."""

from __future__ import annotations

import logging
import re

import lxml.html
from lxml import etree
from lxml.html import HtmlElement

from config.settings import settings
from core.models import Article
from scrapers.normalizer import absolute_url, extract_creator_from_url, extract_number

log = logging.getLogger(__name__)

LINK_SELECTOR = 'a[href*="/n/"]'
ITEM_HREF_RE = re.compile(r"/[^/]+/n/[a-zA-Z0-9]+$")
HEADING_SELECTOR = "h1, h2, h3, h4"
MAX_CONTAINER_DEPTH = 10
MAX_TITLE_LENGTH = 200

LIKE_SELECTORS = ('[class*="like"]', '[class*="Like"]', '[class*="heart"]', '[class*="Heart"]')
PRICE_SELECTORS = ('[class*="price"]', '[class*="Price"]', '[class*="amount"]')
CREATOR_SELECTORS = (
    '[class*="creator"]', '[class*="Creator"]',
    '[class*="author"]', '[class*="Author"]',
    '[class*="userName"]',
)
FREE_MARKER = "無料"
_YEN_RE = re.compile(r"[¥￥]\s*([0-9,]+)")


def _text(el: HtmlElement) -> str:
    return el.text_content().strip()


def _first(el: HtmlElement, selector: str) -> HtmlElement | None:
    found = el.cssselect(selector)
    return found[0] if found else None


def _item_url(href: str, base_url: str) -> str | None:
    if not ITEM_HREF_RE.search(href):
        return None
    return absolute_url(href, base_url)


def _next_element(el: HtmlElement) -> HtmlElement | None:
    sibling = el.getnext()
    while sibling is not None and not isinstance(sibling.tag, str):
        sibling = sibling.getnext()
    return sibling


def parse_page(html: str) -> HtmlElement | None:
    if not html or not html.strip():
        return None
    try:
        return lxml.html.document_fromstring(html)
    except (etree.ParserError, ValueError) as exc:
        log.warning("Could not parse page snapshot: %s", exc)
        return None


def _has_other_item_link(node: HtmlElement, own_url: str, base_url: str) -> bool:
    for link in node.cssselect(LINK_SELECTOR):
        url = _item_url(link.get("href", ""), base_url)
        if url and url != own_url:
            return True
    return False


def find_item_container(link: HtmlElement, base_url: str | None = None) -> HtmlElement | None:
    """Largest ancestor of ``link`` that holds no other article's link.

    Climbs at most ``MAX_CONTAINER_DEPTH`` levels and stops one level below
    the first ancestor that also wraps a different article.  Falls back to
    the link's parent when no such boundary is found.
    """
    base_url = base_url or settings.NOTE_BASE_URL
    own_url = _item_url(link.get("href", ""), base_url) or ""
    parent = link.getparent()
    candidate = parent
    node = parent
    for _ in range(MAX_CONTAINER_DEPTH):
        if node is None or node.tag in ("body", "html"):
            break
        if _has_other_item_link(node, own_url, base_url):
            return candidate
        candidate = node
        node = node.getparent()
    return parent


def extract_title(link: HtmlElement, container: HtmlElement | None) -> str:
    heading = _first(link, HEADING_SELECTOR)
    if heading is not None and _text(heading):
        return _text(heading)
    for attr in ("aria-label", "title"):
        value = (link.get(attr) or "").strip()
        if value:
            return value
    if container is not None:
        heading = _first(container, HEADING_SELECTOR)
        if heading is not None and _text(heading):
            return _text(heading)
    for line in link.text_content().splitlines():
        if line.strip():
            return line.strip()[:MAX_TITLE_LENGTH]
    return ""


def extract_like_count(container: HtmlElement | None) -> int:
    if container is None:
        return 0
    for icon in container.cssselect("svg"):
        parent = icon.getparent()
        if parent is None:
            continue
        num = extract_number(_text(parent))
        if num > 0:
            return num
        sibling = _next_element(parent)
        if sibling is None:
            sibling = _next_element(icon)
        if sibling is not None:
            num = extract_number(_text(sibling))
            if num > 0:
                return num
    for selector in LIKE_SELECTORS:
        el = _first(container, selector)
        if el is not None:
            num = extract_number(_text(el))
            if num > 0:
                return num
    return 0


def extract_price(container: HtmlElement | None) -> int:
    if container is None:
        return 0
    for selector in PRICE_SELECTORS:
        el = _first(container, selector)
        if el is not None:
            text = _text(el)
            if FREE_MARKER in text:
                return 0
            num = extract_number(text)
            if num > 0:
                return num
    match = _YEN_RE.search(container.text_content())
    return extract_number(match.group(1)) if match else 0


def extract_creator(container: HtmlElement | None, url: str) -> str:
    if container is not None:
        for selector in CREATOR_SELECTORS:
            el = _first(container, selector)
            if el is not None:
                text = _text(el)
                if 0 < len(text) < 100:
                    return text
    return extract_creator_from_url(url)


def collect_articles_from_dom(html: str, base_url: str | None = None) -> list[Article]:
    """One pass over a page snapshot; never raises."""
    base_url = base_url or settings.NOTE_BASE_URL
    page = parse_page(html)
    if page is None:
        return []

    articles: list[Article] = []
    seen: set[str] = set()

    for link in page.cssselect(LINK_SELECTOR):
        url = _item_url(link.get("href", ""), base_url)
        if not url or url in seen:
            continue

        container = find_item_container(link, base_url)
        title = extract_title(link, container)
        if len(title) < 2:
            continue

        seen.add(url)
        articles.append(
            Article(
                title=title,
                like_count=extract_like_count(container),
                price=extract_price(container),
                url=url,
                creator=extract_creator(container, url),
            )
        )

    return articles


def diagnose_dom(html: str) -> None:
    """Log the ancestor chain of the first article link (debug aid)."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    page = parse_page(html)
    if page is None:
        return
    links = page.cssselect(LINK_SELECTOR)
    log.debug("Links containing /n/: %d", len(links))
    if not links:
        return
    sample = links[0]
    log.debug("Sample link: href=%s text=%s", sample.get("href"), _text(sample)[:50])
    node = sample.getparent()
    for level in range(8):
        if node is None or node.tag == "body":
            break
        log.debug("  %d up: <%s> class=%s", level, node.tag, (node.get("class") or "")[:120])
        node = node.getparent()
