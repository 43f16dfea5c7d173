"""Single surface the presentation layer talks to.

Owns the job store, the current filters, the scrape controller and the
realtime subscription. ``teardown()`` (or leaving ``async with``) releases the
subscription and any running poll loop.
"""
from collections.abc import Callable
from typing import Any, Self

from loguru import logger
from pydantic import ValidationError

from job_feed.client import JobFeedClient
from job_feed.feed import filtered_view, tab_counts
from job_feed.schema import (
    FeedView,
    FetchParams,
    FilterState,
    JobRecord,
    JobStats,
    ScrapeRequest,
    ScrapeStatus,
    Tab,
    UpsertResult,
)
from job_feed.store import JobStore
from job_feed.sync.channel import NewJobsCallback, RealtimeChannel
from job_feed.sync.controller import ScrapeController, ScrapeHandle

DEFAULT_SCRAPE_QUERY = "jobs South Africa"


class FeedOrchestrator:
    def __init__(
        self,
        client: JobFeedClient,
        *,
        poll_interval: float = 5.0,
        request_timeout: float = 10.0,
        default_scrape_query: str = DEFAULT_SCRAPE_QUERY,
        on_new_jobs: NewJobsCallback | None = None,
        on_scrape_status: Callable[[ScrapeStatus], None] | None = None,
    ) -> None:
        self._client = client
        self._default_scrape_query = default_scrape_query
        self._on_scrape_status = on_scrape_status
        self._fetch_params = FetchParams()
        self._filters = FilterState()
        self._stats: JobStats = JobStats()

        self.store = JobStore()
        self.controller = ScrapeController(
            client,
            on_completed=self.refresh,
            poll_interval=poll_interval,
            request_timeout=request_timeout,
        )
        self.channel = RealtimeChannel(self.store, self.controller, on_new_jobs=on_new_jobs)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: Any) -> None:
        self.teardown()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, initial_filters: FetchParams | None = None) -> FeedView:
        """Load the first page of jobs and start listening for pushed updates.

        Raises:
            TransportError if the initial fetch fails; nothing is subscribed then.
        """
        params = self._fetch_params if initial_filters is None else initial_filters
        await self._pull(params)
        self._fetch_params = params
        self.channel.open(self._client.subscribe_to_job_updates)
        return self.view()

    def teardown(self) -> None:
        """Release the subscription and stop any scrape polling. Safe to call repeatedly."""
        self.channel.close()
        if self.controller.cancel():
            logger.debug("Scrape polling stopped on teardown")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def search(self, query: str) -> FeedView:
        self._filters = self._filters.model_copy(update={"search_query": query})
        return self.view()

    def set_tab(self, tab: Tab | str) -> FeedView:
        self._filters = self._filters.model_copy(update={"active_tab": Tab(tab)})
        return self.view()

    async def refresh(self) -> UpsertResult:
        """Re-fetch with the current fetch filters and merge the result.

        Raises:
            TransportError; the store keeps its previous contents.
        """
        return await self._pull()

    async def start_scrape(
        self,
        query: str | None = None,
        location: str | None = None,
        date_filter: str | None = None,
    ) -> ScrapeHandle:
        """Raises:
            OperationConflict
            TransportError
        """
        request = ScrapeRequest(
            query=query or self._filters.search_query or self._default_scrape_query,
            location=self._fetch_params.location if location is None else location,
            date_filter=self._fetch_params.date_filter if date_filter is None else date_filter,
        )
        handle = await self.controller.trigger(request)
        if self._on_scrape_status is not None:
            handle.on_status(self._on_scrape_status)
        return handle

    def cancel_scrape(self) -> bool:
        return self.controller.cancel()

    async def load_stats(self) -> JobStats:
        self._stats = await self._client.get_job_stats()
        return self._stats

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def fetch_params(self) -> FetchParams:
        return self._fetch_params

    @property
    def stats(self) -> JobStats:
        return self._stats

    @property
    def scrape_status(self) -> ScrapeStatus:
        return self.controller.status

    def filtered_view(self) -> list[JobRecord]:
        return filtered_view(self.store.all(), self._filters)

    def tab_counts(self) -> dict[Tab, int]:
        return tab_counts(self.store.all())

    def view(self) -> FeedView:
        records = self.store.all()
        return FeedView(
            jobs=filtered_view(records, self._filters),
            tab_counts=tab_counts(records),
            filters=self._filters,
        )

    async def _pull(self, params: FetchParams | None = None) -> UpsertResult:
        result = await self._client.fetch_jobs(self._fetch_params if params is None else params)
        upserted = self.store.upsert_many(result.jobs)
        if result.stats:
            try:
                self._stats = JobStats.model_validate(result.stats)
            except ValidationError as e:
                logger.warning(f"Ignoring malformed job stats: {e.error_count()} error(s)")
        logger.info(f"Fetched {len(result.jobs)} jobs ({upserted.new_count} new), store holds {self.store.count()}")
        return upserted
