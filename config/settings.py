from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./note_exporter.db"

    # Server
    DASHBOARD_PORT: int = 8001
    LOG_LEVEL: str = "INFO"

    # Platform
    NOTE_BASE_URL: str = "https://note.com"
    NOTE_COOKIE: str = ""
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/126.0 Safari/537.36"
    )
    HTTP_TIMEOUT: float = 30.0

    # Search / hashtag API
    SEARCH_PAGE_SIZE: int = 20
    API_PAGE_DELAY: float = 0.5
    HASHTAG_USE_API: bool = False

    # DOM fallback
    BROWSER_HEADLESS: bool = True
    SCROLL_WAIT: float = 2.0
    SCROLL_STAGNATION_LIMIT: int = 15

    # Rating enrichment
    RATING_DELAY: float = 0.3

    # Export
    EXPORT_DIR: str = "./exports"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
