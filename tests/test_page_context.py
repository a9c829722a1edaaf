import pytest

from scrapers.page_context import InvalidRequestError, PageContext, hashtag_name, validate_start


def test_search_context_from_url():
    ctx = PageContext.from_url("https://note.com/search?q=AI%20%E6%B4%BB%E7%94%A8&context=note&sort=new")
    assert ctx.page_type == "search"
    assert ctx.query == "AI 活用"
    assert ctx.context == "note"
    assert ctx.sort == "new"
    assert ctx.mode == "search"


def test_search_defaults():
    ctx = PageContext.from_url("https://note.com/search?q=python")
    assert ctx.context == "note"
    assert ctx.sort == ""


def test_hashtag_context_from_url():
    ctx = PageContext.from_url("https://note.com/hashtag/%E6%97%85%E8%A1%8C?sort=new")
    assert ctx.page_type == "hashtag"
    assert ctx.hashtag == "旅行"
    assert ctx.hashtag_sort == "new"
    assert PageContext.from_url("https://note.com/hashtag/tag").hashtag_sort == "popular"


def test_hashtag_name():
    assert hashtag_name("/hashtag/AI/") == "AI"
    assert hashtag_name("/search") == ""


@pytest.mark.parametrize("count", [0, -1, True, "10", 2.5, None])
def test_rejects_bad_count(count):
    with pytest.raises(InvalidRequestError):
        validate_start(count, "https://note.com/search?q=x")


@pytest.mark.parametrize(
    "url",
    [
        "",
        "https://example.com/search?q=x",
        "ftp://note.com/search?q=x",
        "https://note.com/someone/n/n123",
        "https://note.com/hashtag/",
    ],
)
def test_rejects_pages_other_than_search_or_hashtag(url):
    with pytest.raises(InvalidRequestError):
        validate_start(10, url)


def test_accepts_search_and_hashtag_pages():
    assert validate_start(1, "https://note.com/search?q=x").page_type == "search"
    assert validate_start(3, "https://note.com/hashtag/AI").page_type == "hashtag"
