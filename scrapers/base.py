from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx

from config.settings import settings

SleepFn = Callable[[float], Awaitable[None]]


class ProgressFn(Protocol):
    def __call__(self, current: int | None = None, message: str | None = None) -> None: ...


class Pacer:
    """Fixed pause between sequential requests.

    The sleep function is injectable so tests can pace without waiting.
    """

    def __init__(self, delay_seconds: float, sleep: SleepFn = asyncio.sleep) -> None:
        self._delay = delay_seconds
        self._sleep = sleep

    @property
    def delay(self) -> float:
        return self._delay

    async def pause(self) -> None:
        if self._delay > 0:
            await self._sleep(self._delay)


def build_client() -> httpx.AsyncClient:
    """HTTP client carrying the ambient note.com credentials."""
    headers = {"User-Agent": settings.USER_AGENT}
    if settings.NOTE_COOKIE:
        headers["Cookie"] = settings.NOTE_COOKIE
    return httpx.AsyncClient(
        headers=headers,
        follow_redirects=True,
        timeout=settings.HTTP_TIMEOUT,
    )
