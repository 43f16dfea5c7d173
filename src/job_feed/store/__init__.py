"""Job record storage."""

from job_feed.store.job_store import JobStore

__all__ = ["JobStore"]
