"""Interface of the job feed backend consumed by the sync engine."""
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from job_feed.schema import FetchParams, FetchResult, JobStats, ScrapeRequest, ScrapeStatus

type EventHandler = Callable[[Any], Awaitable[None]]
type Unsubscribe = Callable[[], None]


class JobFeedClient(Protocol):
    async def fetch_jobs(self, params: FetchParams) -> FetchResult:
        """Pull the current job list.

        Raises:
            TransportError
        """
        ...

    async def trigger_scraping(self, request: ScrapeRequest) -> str:
        """Start a remote scrape and return its operation id.

        Raises:
            TransportError
        """
        ...

    async def get_scraping_status(self, operation_id: str) -> ScrapeStatus:
        """Point-in-time status of a remote scrape.

        Raises:
            TransportError
        """
        ...

    async def get_job_stats(self) -> JobStats: ...

    def subscribe_to_job_updates(self, handler: EventHandler) -> Unsubscribe:
        """Deliver every pushed event payload to ``handler`` until unsubscribed."""
        ...
