"""Job feed backend clients."""
from job_feed.client.base import EventHandler, JobFeedClient, Unsubscribe
from job_feed.client.http_client import HttpJobFeedClient

__all__ = ["EventHandler", "HttpJobFeedClient", "JobFeedClient", "Unsubscribe"]
