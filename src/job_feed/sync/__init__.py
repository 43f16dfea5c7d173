"""Synchronization of the job feed with the scraping backend."""

from job_feed.sync.channel import RealtimeChannel, parse_event
from job_feed.sync.controller import ScrapeController, ScrapeHandle
from job_feed.sync.orchestrator import FeedOrchestrator

__all__ = ["FeedOrchestrator", "RealtimeChannel", "ScrapeController", "ScrapeHandle", "parse_event"]
