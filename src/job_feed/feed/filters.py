"""Search and tab predicates over job records.

All functions are pure: they read records and never mutate the store.
"""

from collections.abc import Iterable

from job_feed.schema import FilterState, JobRecord, Tab

FOR_YOU_THRESHOLD = 80


def matches_search(record: JobRecord, query: str) -> bool:
    """Case-insensitive substring match against title, company or description."""
    if not query:
        return True
    needle = query.lower()
    return any(
        needle in (field or "").lower()
        for field in (record.title, record.company, record.description)
    )


def matches_tab(record: JobRecord, tab: Tab) -> bool:
    match tab:
        case Tab.all:
            return True
        case Tab.for_you:
            return record.ai_match_score >= FOR_YOU_THRESHOLD
        case Tab.saved:
            return record.is_saved
        case Tab.applied:
            return record.is_applied
    raise ValueError(f"Unknown tab: {tab!r}")


def filtered_view(records: Iterable[JobRecord], filter_state: FilterState) -> list[JobRecord]:
    """Records passing both the search and tab predicates, in store order."""
    return [
        r for r in records
        if matches_search(r, filter_state.search_query) and matches_tab(r, filter_state.active_tab)
    ]


def tab_counts(records: Iterable[JobRecord]) -> dict[Tab, int]:
    counts = dict.fromkeys(Tab, 0)
    for record in records:
        for tab in Tab:
            if matches_tab(record, tab):
                counts[tab] += 1
    return counts
