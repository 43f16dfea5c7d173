"""Derived views over the job store."""

from job_feed.feed.filters import (
    FOR_YOU_THRESHOLD,
    filtered_view,
    matches_search,
    matches_tab,
    tab_counts,
)

__all__ = ["FOR_YOU_THRESHOLD", "filtered_view", "matches_search", "matches_tab", "tab_counts"]
