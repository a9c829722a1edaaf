from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from data.database import get_session
from data.repositories import ScrapeLogRepository
from scrapers.page_context import InvalidRequestError

router = APIRouter(prefix="/api/scraper", tags=["scraper"])

# The runner reference is injected by main.py at startup
_runner = None


def set_runner(runner) -> None:
    global _runner
    _runner = runner


class StartRequest(BaseModel):
    count: int
    url: str


@router.post("/start")
async def start_scrape(req: StartRequest):
    if _runner is None:
        raise HTTPException(503, "Runner not initialized")
    try:
        return _runner.start(req.count, req.url)
    except InvalidRequestError as e:
        raise HTTPException(400, str(e)) from e


@router.get("/progress")
async def progress():
    if _runner is None:
        return {"status": "idle", "current": 0, "total": 0, "message": ""}
    return _runner.get_progress()


@router.get("/runs")
async def recent_runs(limit: int = Query(20, ge=1, le=100)):
    async with get_session() as session:
        repo = ScrapeLogRepository(session)
        runs = await repo.recent_runs(limit=limit)
        return [
            {
                "id": r.id,
                "page_type": r.page_type,
                "page_url": r.page_url,
                "target_count": r.target_count,
                "status": r.status,
                "items_scraped": r.items_scraped,
                "error_message": r.error_message,
                "export_path": r.export_path,
                "duration_seconds": r.duration_seconds,
                "started_at": r.started_at.isoformat() if r.started_at else None,
                "finished_at": r.finished_at.isoformat() if r.finished_at else None,
            }
            for r in runs
        ]
