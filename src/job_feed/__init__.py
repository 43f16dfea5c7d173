"""Keeps a live job feed in sync with an asynchronous scraping backend."""

from job_feed.sync import FeedOrchestrator

__all__ = ["FeedOrchestrator"]
