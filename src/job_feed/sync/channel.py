"""Realtime job updates: turns pushed events into store and controller actions."""
from collections.abc import Callable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from job_feed.client import EventHandler, Unsubscribe
from job_feed.exceptions import MalformedEvent
from job_feed.schema import NewJobsEvent, RealtimeEventAdapter, ScrapingProgressEvent
from job_feed.store import JobStore
from job_feed.sync.controller import ScrapeController

type Subscribe = Callable[[EventHandler], Unsubscribe]
type NewJobsCallback = Callable[[int], None]


def parse_event(payload: Any) -> NewJobsEvent | ScrapingProgressEvent:
    """Validate a pushed payload.

    Raises:
        MalformedEvent
    """
    try:
        return RealtimeEventAdapter.validate_python(payload)
    except ValidationError as e:
        kind = payload.get("type") if isinstance(payload, dict) else type(payload).__name__
        raise MalformedEvent(f"Malformed '{kind}' event: {e.error_count()} error(s)") from e


class RealtimeChannel:
    """One realtime subscription feeding the store and the scrape controller."""

    def __init__(
        self,
        store: JobStore,
        controller: ScrapeController,
        on_new_jobs: NewJobsCallback | None = None,
    ) -> None:
        self._store = store
        self._controller = controller
        self._on_new_jobs = on_new_jobs
        self._unsubscribe: Unsubscribe | None = None

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    def open(self, subscribe: Subscribe) -> None:
        """Subscribe through ``subscribe``, replacing any previous subscription."""
        if self._unsubscribe is not None:
            logger.debug("Replacing existing job update subscription")
            self.close()
        self._unsubscribe = subscribe(self.dispatch)
        logger.info("Subscribed to job updates")

    def close(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        unsubscribe()
        logger.info("Unsubscribed from job updates")

    async def dispatch(self, payload: Any) -> None:
        try:
            event = parse_event(payload)
        except MalformedEvent as e:
            logger.warning(f"Ignoring job update: {e}")
            return

        match event:
            case NewJobsEvent(jobs=jobs):
                result = self._store.upsert_many(jobs)
                logger.info(f"Pushed jobs: {result.new_count} new | {result.replaced} updated | {result.dropped} dropped")
                if result.new_count and self._on_new_jobs is not None:
                    self._on_new_jobs(result.new_count)
            case ScrapingProgressEvent(status=status):
                await self._controller.apply_remote_status(status)
