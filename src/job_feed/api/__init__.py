"""Mock HTTP backend for the job feed."""

from job_feed.api.mock_backend import create_app, serve

__all__ = ["create_app", "serve"]
