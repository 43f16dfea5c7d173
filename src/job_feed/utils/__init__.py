"""Utility modules."""

from job_feed.utils.logger import setup_logger

__all__ = ["setup_logger"]
