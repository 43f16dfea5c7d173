import pytest
from hypothesis import given
from hypothesis import strategies as st

from job_feed.feed import FOR_YOU_THRESHOLD, filtered_view, matches_search, matches_tab, tab_counts
from job_feed.schema import FilterState, JobRecord, Tab

job_records = st.builds(
    JobRecord,
    id=st.uuids().map(str),
    title=st.sampled_from(["Welder", "Senior Welder", "Developer", ""]),
    company=st.sampled_from(["Acme", "Steelworks", ""]),
    ai_match_score=st.integers(0, 100),
    is_saved=st.booleans(),
    is_applied=st.booleans(),
)


# ── Search ─────────────────────────────────────────────────────────────────────

def test_search_is_case_insensitive():
    assert matches_search(JobRecord(id="1", title="Senior Welder"), "WELDER")


def test_empty_query_matches_everything():
    assert matches_search(JobRecord(id="1"), "")


@pytest.mark.parametrize("field", ["title", "company", "description"])
def test_search_checks_each_text_field(field):
    record = JobRecord(id="1", **{field: "Boilermaker Apprentice"})
    assert matches_search(record, "boilermaker")


def test_missing_fields_do_not_block_other_matches():
    record = JobRecord.model_validate({"id": "1", "title": None, "company": None, "description": "Night shift welding"})
    assert matches_search(record, "welding")
    assert not matches_search(record, "day shift")


# ── Tabs ───────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("score,expected", [
    (FOR_YOU_THRESHOLD - 1, False),
    (FOR_YOU_THRESHOLD,     True),
    (100,                   True),
    (0,                     False),
])
def test_for_you_threshold(score, expected):
    assert matches_tab(JobRecord(id="1", ai_match_score=score), Tab.for_you) is expected


def test_saved_and_applied_use_fields():
    record = JobRecord(id="1", is_saved=True)
    assert matches_tab(record, Tab.all)
    assert matches_tab(record, Tab.saved)
    assert not matches_tab(record, Tab.applied)


def test_filtered_view_keeps_store_order():
    records = [
        JobRecord(id="1", title="Welder", ai_match_score=90),
        JobRecord(id="2", title="Painter", ai_match_score=95),
        JobRecord(id="3", title="Welder's mate", ai_match_score=81),
        JobRecord(id="4", title="Welder", ai_match_score=10),
    ]
    view = filtered_view(records, FilterState(search_query="welder", active_tab=Tab.for_you))
    assert [r.id for r in view] == ["1", "3"]


def test_tab_counts_cover_every_tab():
    counts = tab_counts([])
    assert counts == {Tab.all: 0, Tab.for_you: 0, Tab.saved: 0, Tab.applied: 0}


@given(st.lists(job_records, max_size=20))
def test_tab_counts_match_unsearched_views(records):
    counts = tab_counts(records)
    for tab in Tab:
        assert counts[tab] == len(filtered_view(records, FilterState(active_tab=tab)))


@given(st.lists(job_records, max_size=20), st.sampled_from(["weld", "ACME", "", "x"]), st.sampled_from(list(Tab)))
def test_filtered_view_is_a_subsequence(records, query, tab):
    view = filtered_view(records, FilterState(search_query=query, active_tab=tab))
    remaining = iter(records)
    assert all(any(r is candidate for candidate in remaining) for r in view)
