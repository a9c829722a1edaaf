import asyncio
from contextlib import asynccontextmanager

import httpx
import pytest

from scrapers.export import BOM
from scrapers.page_context import InvalidRequestError
from scrapers.runner import ScrapeRunner

SEARCH_URL = "https://note.com/search?q=AI&context=note&sort=popular"
HASHTAG_URL = "https://note.com/hashtag/AI"
PLAIN_PAGE = "<html><body><p>記事本文</p></body></html>"


class MemorySaver:
    def __init__(self, error=None):
        self.saved = {}
        self._error = error

    def save(self, filename, data):
        if self._error:
            raise self._error
        self.saved[filename] = data
        return f"mem://{filename}"


class StaticPage:
    def __init__(self, html):
        self._html = html
        self.scrolls = 0

    async def content(self):
        return self._html

    async def scroll_to_bottom(self):
        self.scrolls += 1


async def _no_sleep(seconds):
    return None


def _page_opener(page, opened):
    @asynccontextmanager
    async def open_page(url):
        opened.append(url)
        yield page

    return open_page


def _cards(n):
    cards = "".join(
        f'<div class="card"><a href="/u{i}/n/n{i:03d}">ページ記事{i}</a></div>' for i in range(n)
    )
    return f"<html><body><section>{cards}</section></body></html>"


def _note(i):
    return {
        "name": f"記事{i}",
        "like_count": i,
        "price": 100 * i,
        "note_url": f"https://note.com/u{i}/n/n{i:03d}",
        "user": {"nickname": f"user{i}"},
    }


def _make_runner(handler, *, page=None, opened=None, saver=None):
    return ScrapeRunner(
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        page_opener=_page_opener(page or StaticPage(PLAIN_PAGE), opened if opened is not None else []),
        saver=saver or MemorySaver(),
        sleep=_no_sleep,
        persist_runs=False,
    )


def _start_and_wait(runner, count, url):
    async def scenario():
        ack = runner.start(count, url)
        await runner.wait()
        return ack

    return asyncio.run(scenario())


def _search_handler(notes, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(request.url.path)
        if request.url.path == "/api/v3/searches":
            return httpx.Response(200, json={"data": {"notes": {"contents": notes}}})
        if request.url.path.startswith("/api/v3/notes/"):
            return httpx.Response(200, json={"data": {"note": {}}})
        return httpx.Response(200, text=PLAIN_PAGE)

    return handler


def test_search_run_exports_csv():
    saver = MemorySaver()
    runner = _make_runner(_search_handler([_note(i) for i in range(1, 4)]), saver=saver)

    ack = _start_and_wait(runner, 3, SEARCH_URL)

    assert ack == {"status": "started"}
    assert runner.get_progress() == {
        "status": "completed",
        "current": 3,
        "total": 3,
        "message": "Exported 3 articles to CSV.",
    }
    (data,) = saver.saved.values()
    lines = data.decode("utf-8").lstrip(BOM).split("\n")
    assert len(lines) == 4
    assert lines[1] == '"記事1",1,0,100,"https://note.com/u1/n/n001","user1"'
    assert [a.like_rating for a in runner.session.articles] == [0, 0, 0]


def test_api_failure_falls_back_to_page():
    def handler(request):
        if request.url.path == "/api/v3/searches":
            return httpx.Response(403)
        if request.url.path.startswith("/api/v3/notes/"):
            return httpx.Response(200, json={"data": {"note": {"rating_count": 2}}})
        return httpx.Response(200, text=PLAIN_PAGE)

    opened = []
    saver = MemorySaver()
    runner = _make_runner(handler, page=StaticPage(_cards(2)), opened=opened, saver=saver)

    _start_and_wait(runner, 2, SEARCH_URL)

    assert opened == [SEARCH_URL]
    assert runner.get_progress()["status"] == "completed"
    assert [a.title for a in runner.session.articles] == ["ページ記事0", "ページ記事1"]
    assert [a.like_rating for a in runner.session.articles] == [2, 2]
    assert len(saver.saved) == 1


def test_hashtag_page_scrolls_without_calling_hashtag_api():
    requests = []
    opened = []
    runner = _make_runner(
        _search_handler([], requests), page=StaticPage(_cards(1)), opened=opened
    )

    _start_and_wait(runner, 1, HASHTAG_URL)

    assert opened == [HASHTAG_URL]
    assert not any(path.startswith("/api/v3/hashtags") for path in requests)
    assert runner.get_progress()["status"] == "completed"


def test_nothing_collected_ends_in_error():
    saver = MemorySaver()
    page = StaticPage(PLAIN_PAGE)
    runner = _make_runner(_search_handler([]), page=page, saver=saver)

    _start_and_wait(runner, 5, SEARCH_URL)

    progress = runner.get_progress()
    assert progress["status"] == "error"
    assert progress["current"] == 0
    assert progress["message"] == "No articles could be collected from this page."
    assert saver.saved == {}
    assert page.scrolls > 0


def test_unexpected_failure_is_reported():
    runner = _make_runner(
        _search_handler([_note(1)]), saver=MemorySaver(error=OSError("disk full"))
    )

    _start_and_wait(runner, 1, SEARCH_URL)

    assert runner.get_progress() == {
        "status": "error",
        "current": 0,
        "total": 1,
        "message": "Error: disk full",
    }


def test_second_start_while_running_is_rejected():
    runner = _make_runner(_search_handler([_note(1)]))

    async def scenario():
        first = runner.start(1, SEARCH_URL)
        second = runner.start(1, SEARCH_URL)
        await runner.wait()
        return first, second

    first, second = asyncio.run(scenario())

    assert first == {"status": "started"}
    assert second == {"status": "already_running"}
    assert runner.get_progress()["total"] == 1


def test_invalid_start_leaves_session_idle():
    runner = _make_runner(_search_handler([]))

    async def scenario():
        with pytest.raises(InvalidRequestError):
            runner.start(0, SEARCH_URL)
        with pytest.raises(InvalidRequestError):
            runner.start(3, "https://example.com/search?q=x")

    asyncio.run(scenario())

    assert runner.get_progress()["status"] == "idle"
