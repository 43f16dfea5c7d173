"""Application settings and configuration."""

import copy
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from job_feed.schema import FetchParams

DEFAULT_COMING_SOON = "This feature is coming soon!"
JOB_SEARCH_FEATURE = "userFeatures.jobSearch"

# used when no config file sets `features`
DEFAULT_FEATURES: dict[str, Any] = {"userFeatures": {"jobSearch": {"enabled": True}}}


class Config(BaseModel):
    filters: FetchParams = Field(default_factory=FetchParams)
    features: dict[str, Any] = Field(default_factory=lambda: copy.deepcopy(DEFAULT_FEATURES))

    @field_validator("filters", mode="before")
    @classmethod
    def _none_as_default(cls, v: Any) -> Any:
        return {} if v is None else v

    def _feature(self, path: str) -> Any:
        node: Any = self.features
        for key in path.split("."):
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return node

    def is_feature_enabled(self, path: str) -> bool:
        feature = self._feature(path)
        return isinstance(feature, dict) and feature.get("enabled") is True

    def can_user_access_feature(self, path: str) -> bool:
        """Only user-facing and generally available features can be granted to users."""
        if path.startswith(("userFeatures.", "availableFeatures.")):
            return self.is_feature_enabled(path)
        return False

    def coming_soon_message(self, path: str) -> str:
        feature = self._feature(path)
        if isinstance(feature, dict) and feature.get("message"):
            return str(feature["message"])
        return DEFAULT_COMING_SOON


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_prefix="JOB_FEED_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Feed backend
    api_url: str = Field(default="http://localhost:8000/api", description="Base URL of the job feed API")
    http_timeout: float = Field(default=30.0, description="Timeout for every HTTP request, seconds")

    # Scrape polling
    poll_interval: float = Field(default=5.0, gt=0, description="Seconds between scrape status polls")
    request_timeout: float = Field(default=10.0, gt=0, description="Upper bound for a single status poll, seconds")
    default_scrape_query: str = Field(default="jobs South Africa")

    # Logging / Sentry
    log_level: str = Field(default="INFO")
    log_file: Path | None = Field(default=None, description="Optional rotating debug log file")
    sentry_dsn: str = Field(default="", description="Sentry DSN, empty string disables Sentry")
    sentry_environment: str = Field(default="development", description="Sentry environment tag (e.g. production, development)")

    # Paths
    config_file: Path = Field(default=Path("config.yaml"), description="Path to config file")

    def load_config(self) -> Config:
        """Load default filters and feature flags from the YAML file."""
        if not self.config_file.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_file}")

        with open(self.config_file) as f:
            data = yaml.safe_load(f) or {}
            return Config.model_validate(data)


settings = Settings()
