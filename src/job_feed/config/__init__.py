"""Configuration management."""

from job_feed.config.settings import Config, Settings, settings

__all__ = ["Config", "Settings", "settings"]
