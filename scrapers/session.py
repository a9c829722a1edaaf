"""Run status shared between the active run and progress pollers."""

from __future__ import annotations

import uuid

from core.models import Article, SessionState, SessionStatus


class StaleRunError(RuntimeError):
    """A write from a run that no longer owns the session."""


class ScrapeSession:
    """Single-writer state machine: idle -> scraping -> completed | error.

    Only the holder of the current run token may write.  ``snapshot`` is
    read-only and safe to call at any time.
    """

    def __init__(self) -> None:
        self._state = SessionState()
        self._token: str | None = None

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def articles(self) -> list[Article]:
        return list(self._state.articles)

    def begin(self, target_count: int) -> RunHandle | None:
        """Enter ``scraping``; ``None`` if a run is already active."""
        if self._state.status is SessionStatus.SCRAPING:
            return None
        self._token = uuid.uuid4().hex
        self._state = SessionState(
            status=SessionStatus.SCRAPING,
            current=0,
            target_count=target_count,
        )
        return RunHandle(self, self._token)

    def _check(self, token: str) -> None:
        if token != self._token or self._state.status is not SessionStatus.SCRAPING:
            raise StaleRunError("run no longer owns the session")

    def _update(
        self,
        token: str,
        current: int | None = None,
        message: str | None = None,
        articles: list[Article] | None = None,
    ) -> None:
        self._check(token)
        if articles is not None:
            self._state.articles = list(articles)
        if current is not None:
            ceiling = max(self._state.target_count, len(self._state.articles))
            self._state.current = max(0, min(current, ceiling))
        if message is not None:
            self._state.message = message

    def _finish(self, token: str, status: SessionStatus, message: str) -> None:
        self._check(token)
        self._state.status = status
        self._state.message = message
        if status is SessionStatus.ERROR:
            self._state.current = 0
        self._token = None

    def snapshot(self) -> dict:
        s = self._state
        return {
            "status": s.status.value,
            "current": s.current,
            "total": s.target_count,
            "message": s.message,
        }


class RunHandle:
    """Write access to a session for the duration of one run."""

    def __init__(self, session: ScrapeSession, token: str) -> None:
        self._session = session
        self._token = token

    @property
    def token(self) -> str:
        return self._token

    def update(
        self,
        current: int | None = None,
        message: str | None = None,
        *,
        articles: list[Article] | None = None,
    ) -> None:
        self._session._update(self._token, current, message, articles)

    def complete(self, articles: list[Article], message: str) -> None:
        self._session._update(self._token, len(articles), articles=articles)
        self._session._finish(self._token, SessionStatus.COMPLETED, message)

    def fail(self, message: str) -> None:
        self._session._finish(self._token, SessionStatus.ERROR, message)
