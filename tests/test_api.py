from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.routers import scraper_control
from scrapers.page_context import InvalidRequestError


class FakeRunner:
    def __init__(self):
        self.calls = []

    def start(self, count, url):
        self.calls.append((count, url))
        if count > 100:
            raise InvalidRequestError("count too large for this test")
        return {"status": "started"}

    def get_progress(self):
        return {"status": "scraping", "current": 4, "total": 10, "message": "Scrolling..."}


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def runner():
    fake = FakeRunner()
    scraper_control.set_runner(fake)
    yield fake
    scraper_control.set_runner(None)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_start_forwards_to_runner(client, runner):
    resp = client.post(
        "/api/scraper/start", json={"count": 10, "url": "https://note.com/search?q=x"}
    )

    assert resp.status_code == 200
    assert resp.json() == {"status": "started"}
    assert runner.calls == [(10, "https://note.com/search?q=x")]


def test_start_rejects_invalid_request(client, runner):
    resp = client.post(
        "/api/scraper/start", json={"count": 500, "url": "https://note.com/search?q=x"}
    )

    assert resp.status_code == 400
    assert "too large" in resp.json()["detail"]


def test_start_requires_body_fields(client, runner):
    assert client.post("/api/scraper/start", json={"url": "x"}).status_code == 422
    assert runner.calls == []


def test_start_without_runner(client):
    scraper_control.set_runner(None)
    resp = client.post("/api/scraper/start", json={"count": 1, "url": "https://note.com/search?q=x"})
    assert resp.status_code == 503


def test_progress(client, runner):
    assert client.get("/api/scraper/progress").json() == {
        "status": "scraping",
        "current": 4,
        "total": 10,
        "message": "Scrolling...",
    }


def test_progress_without_runner_is_idle(client):
    scraper_control.set_runner(None)
    assert client.get("/api/scraper/progress").json() == {
        "status": "idle",
        "current": 0,
        "total": 0,
        "message": "",
    }


def test_recent_runs(client, monkeypatch):
    run = SimpleNamespace(
        id=1,
        page_type="search",
        page_url="https://note.com/search?q=x",
        target_count=5,
        status="completed",
        items_scraped=5,
        error_message="",
        export_path="exports/a.csv",
        duration_seconds=1.5,
        started_at=datetime(2024, 1, 1, 12, 0),
        finished_at=None,
    )
    limits = []

    class FakeRepo:
        def __init__(self, session):
            pass

        async def recent_runs(self, limit=20):
            limits.append(limit)
            return [run]

    class FakeSession:
        async def __aenter__(self):
            return object()

        async def __aexit__(self, *exc):
            return False

    monkeypatch.setattr(scraper_control, "ScrapeLogRepository", FakeRepo)
    monkeypatch.setattr(scraper_control, "get_session", FakeSession)

    body = client.get("/api/scraper/runs", params={"limit": 3}).json()

    assert limits == [3]
    assert body[0]["status"] == "completed"
    assert body[0]["started_at"] == "2024-01-01T12:00:00"
    assert body[0]["finished_at"] is None
