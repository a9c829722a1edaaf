from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Article:
    """A single note.com article normalised from the API or the rendered page."""

    title: str
    like_count: int = 0  # スキ数
    price: int = 0  # 0 = free
    url: str = ""
    creator: str = ""
    like_rating: int | None = None  # 高評価数, set only by the rating enricher


class SessionStatus(str, Enum):
    IDLE = "idle"
    SCRAPING = "scraping"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class SessionState:
    status: SessionStatus = SessionStatus.IDLE
    current: int = 0
    target_count: int = 0
    articles: list[Article] = field(default_factory=list)
    message: str = ""


@dataclass
class ScrapeResult:
    """Outcome of a single export run."""

    page_type: str
    page_url: str
    target_count: int
    status: str
    articles: list[Article]
    error: str
    duration_seconds: float
    export_path: str = ""
