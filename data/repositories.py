from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models import ScrapeResult
from data.schema import DBScrapeRun


class ScrapeLogRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._s = session

    async def log_run(self, result: ScrapeResult, *, started_at: datetime) -> None:
        run = DBScrapeRun(
            page_type=result.page_type,
            page_url=result.page_url,
            target_count=result.target_count,
            status=result.status,
            items_scraped=len(result.articles),
            error_message=result.error[:500],
            export_path=result.export_path,
            duration_seconds=round(result.duration_seconds, 2),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        self._s.add(run)

    async def recent_runs(self, limit: int = 20) -> list[DBScrapeRun]:
        q = (
            select(DBScrapeRun)
            .order_by(DBScrapeRun.started_at.desc(), DBScrapeRun.id.desc())
            .limit(limit)
        )
        result = await self._s.execute(q)
        return list(result.scalars().all())
