from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

from config.settings import settings
from core.models import Article

log = logging.getLogger(__name__)

CSV_HEADERS = ("タイトル", "スキ数", "高評価数", "単価", "記事URL", "クリエイター名")
BOM = "\ufeff"
FILENAME_PREFIX = "note_search_results"


class FileSaver(Protocol):
    def save(self, filename: str, data: bytes) -> str: ...


class DirectorySaver:
    """Writes exports into a local directory."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self._dir = Path(directory or settings.EXPORT_DIR)

    def save(self, filename: str, data: bytes) -> str:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._dir / filename
        path.write_bytes(data)
        return str(path)


def escape_csv_field(value: object) -> str:
    """Always quoted; embedded quotes doubled; falsy values become ``""``."""
    if not value:
        return '""'
    return '"' + str(value).replace('"', '""') + '"'


def build_csv(articles: list[Article]) -> str:
    lines = [",".join(CSV_HEADERS)]
    for a in articles:
        lines.append(
            ",".join(
                (
                    escape_csv_field(a.title),
                    str(a.like_count),
                    str(a.like_rating or 0),
                    str(a.price),
                    escape_csv_field(a.url),
                    escape_csv_field(a.creator),
                )
            )
        )
    return "\n".join(lines)


def encode_csv(articles: list[Article]) -> bytes:
    return (BOM + build_csv(articles)).encode("utf-8")


def export_filename(now: datetime | None = None) -> str:
    return f"{FILENAME_PREFIX}_{(now or datetime.now()):%Y%m%d_%H%M}.csv"


def export_articles(
    articles: list[Article], saver: FileSaver, now: datetime | None = None
) -> str:
    filename = export_filename(now)
    location = saver.save(filename, encode_csv(articles))
    log.info("Exported %d articles to %s", len(articles), location)
    return location
