"""note Exporter entry point."""

from __future__ import annotations

import logging

import uvicorn

from api.app import create_app
from api.routers.scraper_control import set_runner
from config.settings import settings
from data.database import init_db
from scrapers.runner import ScrapeRunner

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
log = logging.getLogger(__name__)

app = create_app()


@app.on_event("startup")
async def on_startup() -> None:
    log.info("Initialising database…")
    await init_db()

    runner = ScrapeRunner()
    app.state.runner = runner
    set_runner(runner)
    log.info("Export runner ready (exports go to %s)", settings.EXPORT_DIR)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.DASHBOARD_PORT,
        reload=False,
    )
