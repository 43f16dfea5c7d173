import asyncio
from typing import Any

import pytest

from job_feed.client import EventHandler, Unsubscribe
from job_feed.schema import FetchParams, FetchResult, JobStats, ScrapeRequest, ScrapeStatus


class FakeFeedClient:
    """In-memory JobFeedClient with scripted scrape statuses."""

    def __init__(self) -> None:
        self.jobs: list[Any] = []
        self.stats: dict[str, Any] = {}
        # consumed one per status poll; Exceptions are raised, empty list keeps reporting "running"
        self.statuses: list[ScrapeStatus | Exception] = []
        self.status_delay = 0.0
        self.fetch_error: Exception | None = None
        self.trigger_error: Exception | None = None
        self.trigger_gate: asyncio.Event | None = None

        self.fetch_calls: list[FetchParams] = []
        self.trigger_calls: list[ScrapeRequest] = []
        self.status_calls = 0
        self.handlers: list[EventHandler] = []
        self.unsubscribe_calls = 0

    async def fetch_jobs(self, params: FetchParams) -> FetchResult:
        self.fetch_calls.append(params)
        if self.fetch_error:
            raise self.fetch_error
        return FetchResult(jobs=list(self.jobs), stats=dict(self.stats), total=len(self.jobs), success=True)

    async def trigger_scraping(self, request: ScrapeRequest) -> str:
        self.trigger_calls.append(request)
        if self.trigger_gate is not None:
            await self.trigger_gate.wait()
        if self.trigger_error:
            raise self.trigger_error
        return f"op-{len(self.trigger_calls)}"

    async def get_scraping_status(self, operation_id: str) -> ScrapeStatus:
        self.status_calls += 1
        if self.status_delay:
            await asyncio.sleep(self.status_delay)
        item = self.statuses.pop(0) if self.statuses else ScrapeStatus.running
        if isinstance(item, Exception):
            raise item
        return item

    async def get_job_stats(self) -> JobStats:
        return JobStats.model_validate(self.stats)

    def subscribe_to_job_updates(self, handler: EventHandler) -> Unsubscribe:
        self.handlers.append(handler)

        def unsubscribe() -> None:
            self.unsubscribe_calls += 1
            if handler in self.handlers:
                self.handlers.remove(handler)

        return unsubscribe

    async def push(self, payload: Any) -> None:
        for handler in list(self.handlers):
            await handler(payload)


@pytest.fixture
def fake_client() -> FakeFeedClient:
    return FakeFeedClient()


@pytest.fixture
def refresh_calls() -> list[int]:
    return []


@pytest.fixture
def refresh(refresh_calls):
    async def _refresh() -> None:
        refresh_calls.append(1)
    return _refresh
