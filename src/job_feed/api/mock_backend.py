"""In-memory job feed backend for local runs and client tests.

Implements the HTTP interface the sync engine consumes. Scrape operations
advance one step per status poll (pending -> running -> completed) and add a
few generated jobs when they complete.
"""
import asyncio
import json
import uuid
from collections.abc import AsyncGenerator
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse
from loguru import logger
from pydantic import BaseModel, Field

from job_feed.schema import ScrapeStatus

SAMPLE_JOBS: list[dict[str, Any]] = [
    {
        "id": "sample-1",
        "title": "Senior Welder",
        "company": "Durban Steelworks",
        "location": "Durban",
        "description": "Coded welder for pipeline fabrication. Trade test required.",
        "ai_match_score": 91,
        "has_contact_info": True,
    },
    {
        "id": "sample-2",
        "title": "Junior Python Developer",
        "company": "Cape Data Labs",
        "location": "Cape Town",
        "description": "Build internal tooling with FastAPI and PostgreSQL.",
        "ai_match_score": 64,
        "has_contact_info": False,
    },
    {
        "id": "sample-3",
        "title": "Warehouse Supervisor",
        "company": "Gauteng Logistics",
        "location": "Johannesburg",
        "description": "Lead a team of 12 pickers on the night shift.",
        "ai_match_score": 83,
        "is_saved": True,
        "has_contact_info": True,
    },
]
_GENERATED_SCORES = (92, 75, 85)


class ScrapeBody(BaseModel):
    searchQuery: str = "jobs South Africa"
    location: str = ""
    dateFilter: str = "yesterday"


class MockOperation(BaseModel):
    operation_id: str
    query: str
    status: ScrapeStatus = ScrapeStatus.pending
    jobs_found: int = 0


class MockFeedState:
    def __init__(self, jobs: list[dict[str, Any]], jobs_per_scrape: int) -> None:
        self.jobs = [dict(job) for job in jobs]
        self.jobs_per_scrape = jobs_per_scrape
        self.operations: dict[str, MockOperation] = {}
        self.subscribers: set[asyncio.Queue[dict[str, Any]]] = set()

    def publish(self, event: dict[str, Any]) -> None:
        for queue in self.subscribers:
            queue.put_nowait(event)

    def stats(self) -> dict[str, Any]:
        return {
            "total_jobs": len(self.jobs),
            "jobs_with_contact": sum(1 for job in self.jobs if job.get("has_contact_info")),
            "active_operations": sum(1 for op in self.operations.values() if not op.status.is_terminal),
        }

    def advance(self, operation: MockOperation) -> None:
        if operation.status is ScrapeStatus.pending:
            operation.status = ScrapeStatus.running
        elif operation.status is ScrapeStatus.running:
            new_jobs = [
                {
                    "id": f"{operation.operation_id}-{n}",
                    "title": f"{operation.query.title()} #{n + 1}",
                    "company": "Mock Employer",
                    "description": f"Generated by scrape {operation.operation_id}.",
                    "ai_match_score": _GENERATED_SCORES[n % len(_GENERATED_SCORES)],
                    "has_contact_info": n % 2 == 0,
                }
                for n in range(self.jobs_per_scrape)
            ]
            self.jobs.extend(new_jobs)
            operation.jobs_found = len(new_jobs)
            operation.status = ScrapeStatus.completed
            self.publish({"type": "new_jobs", "jobs": new_jobs})
        else:
            return
        self.publish({"type": "scraping_progress", "status": operation.status.value})


def _matches(job: dict[str, Any], search: str) -> bool:
    needle = search.lower()
    return any(needle in str(job.get(key) or "").lower() for key in ("title", "company", "description"))


def create_app(jobs: list[dict[str, Any]] | None = None, jobs_per_scrape: int = 3) -> FastAPI:
    app = FastAPI(title="job-feed mock backend")
    state = MockFeedState(SAMPLE_JOBS if jobs is None else jobs, jobs_per_scrape)
    app.state.feed = state

    # ── Jobs ─────────────────────────────────────────────────────────────────

    @app.get("/api/jobs")
    async def list_jobs(
        search: str = "",
        location: str = "",
        limit: int = Query(default=20, ge=1),
        offset: int = Query(default=0, ge=0),
        hasContact: bool = False,
    ):
        found = [
            job for job in state.jobs
            if (not search or _matches(job, search))
            and (not location or location.lower() in str(job.get("location") or "").lower())
            and (not hasContact or job.get("has_contact_info"))
        ]
        return {
            "success": True,
            "jobs": found[offset:offset + limit],
            "total": len(found),
            "stats": state.stats(),
        }

    @app.get("/api/jobs/stats")
    async def job_stats():
        return state.stats()

    # ── Scraping ─────────────────────────────────────────────────────────────

    @app.post("/api/jobs/scrape")
    async def trigger_scrape(body: ScrapeBody):
        operation = MockOperation(operation_id=uuid.uuid4().hex[:12], query=body.searchQuery)
        state.operations[operation.operation_id] = operation
        logger.info(f"Mock scrape {operation.operation_id} created for {body.searchQuery!r}")
        return {
            "operationId": operation.operation_id,
            "message": "Scraping started",
            "estimatedTime": "2 polls",
        }

    @app.get("/api/jobs/scrape/{operation_id}/status")
    async def scrape_status(operation_id: str):
        operation = state.operations.get(operation_id)
        if operation is None:
            raise HTTPException(status_code=404, detail=f"Unknown operation: {operation_id}")
        state.advance(operation)
        return {"status": operation.status.value, "jobsFound": operation.jobs_found}

    # ── Realtime ─────────────────────────────────────────────────────────────

    @app.get("/api/jobs/stream")
    async def job_stream():
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        state.subscribers.add(queue)

        async def events() -> AsyncGenerator[str]:
            try:
                yield ": connected\n\n"
                while True:
                    event = await queue.get()
                    yield f"data: {json.dumps(event)}\n\n"
            finally:
                state.subscribers.discard(queue)

        return StreamingResponse(events(), media_type="text/event-stream")

    return app


class MockServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    jobs_per_scrape: int = Field(default=3, ge=0)


def serve(config: MockServerConfig | None = None) -> None:
    config = config or MockServerConfig()
    uvicorn.run(create_app(jobs_per_scrape=config.jobs_per_scrape), host=config.host, port=config.port)
