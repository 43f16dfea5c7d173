import pytest

from job_feed.exceptions import MalformedEvent
from job_feed.schema import NewJobsEvent, ScrapeRequest, ScrapeStatus, ScrapingProgressEvent
from job_feed.store import JobStore
from job_feed.sync import RealtimeChannel, ScrapeController, parse_event


@pytest.fixture
def store() -> JobStore:
    return JobStore()


@pytest.fixture
def controller(fake_client, refresh):
    return ScrapeController(fake_client, on_completed=refresh, poll_interval=60)


@pytest.fixture
def notified() -> list[int]:
    return []


@pytest.fixture
def channel(store, controller, notified, fake_client):
    channel = RealtimeChannel(store, controller, on_new_jobs=notified.append)
    channel.open(fake_client.subscribe_to_job_updates)
    yield channel
    channel.close()
    controller.cancel()


# ── Event parsing ──────────────────────────────────────────────────────────────

def test_parse_new_jobs():
    event = parse_event({"type": "new_jobs", "jobs": [{"id": "1"}]})
    assert isinstance(event, NewJobsEvent)


def test_parse_progress():
    event = parse_event({"type": "scraping_progress", "status": "running"})
    assert isinstance(event, ScrapingProgressEvent)
    assert event.status is ScrapeStatus.running


@pytest.mark.parametrize("payload", [
    {"type": "job_alert", "job": {}},
    {"type": "new_jobs"},
    {"type": "scraping_progress", "status": "exploded"},
    {"type": "scraping_progress", "status": "idle"},
    {"jobs": []},
    ["new_jobs"],
    "new_jobs",
    None,
])
def test_parse_rejects_malformed(payload):
    with pytest.raises(MalformedEvent):
        parse_event(payload)


# ── new_jobs ───────────────────────────────────────────────────────────────────

async def test_new_jobs_reach_store(channel, store, notified, fake_client):
    await fake_client.push({"type": "new_jobs", "jobs": [{"id": "1", "title": "Welder"}, {"id": "2"}]})
    assert [r.id for r in store.all()] == ["1", "2"]
    assert notified == [2]


async def test_replacements_are_not_reported_as_new(channel, store, notified, fake_client):
    store.upsert_many([{"id": "1", "ai_match_score": 10}])
    await fake_client.push({"type": "new_jobs", "jobs": [{"id": "1", "ai_match_score": 90}]})
    assert store.get("1").ai_match_score == 90
    assert notified == []


async def test_partial_batch_is_still_applied(channel, store, notified, fake_client):
    await fake_client.push({"type": "new_jobs", "jobs": [{"title": "no id"}, {"id": "3"}]})
    assert [r.id for r in store.all()] == ["3"]
    assert notified == [1]


async def test_malformed_events_do_not_stop_delivery(channel, store, fake_client):
    await fake_client.push({"type": "mystery"})
    await fake_client.push("garbage")
    await fake_client.push({"type": "new_jobs", "jobs": "not a list"})
    await fake_client.push({"type": "new_jobs", "jobs": [{"id": "ok"}]})
    assert channel.is_open
    assert [r.id for r in store.all()] == ["ok"]


# ── scraping_progress ──────────────────────────────────────────────────────────

async def test_progress_without_operation_is_ignored(channel, controller, fake_client):
    await fake_client.push({"type": "scraping_progress", "status": "running"})
    assert controller.status is ScrapeStatus.idle


async def test_progress_is_forwarded_to_controller(channel, controller, fake_client, refresh_calls):
    handle = await controller.trigger(ScrapeRequest(query="welder"))
    await fake_client.push({"type": "scraping_progress", "status": "running"})
    assert handle.status is ScrapeStatus.running

    await fake_client.push({"type": "scraping_progress", "status": "completed"})
    assert handle.status is ScrapeStatus.completed
    assert refresh_calls == [1]


# ── Subscription lifecycle ─────────────────────────────────────────────────────

async def test_close_unsubscribes_once(channel, fake_client):
    channel.close()
    channel.close()
    assert fake_client.unsubscribe_calls == 1
    assert not channel.is_open
    assert fake_client.handlers == []


async def test_reopen_replaces_subscription(channel, fake_client):
    channel.open(fake_client.subscribe_to_job_updates)
    assert fake_client.unsubscribe_calls == 1
    assert len(fake_client.handlers) == 1
