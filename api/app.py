from __future__ import annotations

import logging

from fastapi import FastAPI

from api.routers import scraper_control

log = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="note Exporter", version="0.1.0")

    # Register API routers
    app.include_router(scraper_control.router)

    # Health check
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
