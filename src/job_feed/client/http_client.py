"""HTTP implementation of the job feed backend interface.

REST calls go through a shared httpx.AsyncClient; job updates are read from a
Server-Sent Events stream at ``{api}/jobs/stream``.
"""
import asyncio
import json
from collections.abc import AsyncGenerator, AsyncIterator
from types import MappingProxyType
from typing import Any, Self

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from job_feed.client.base import EventHandler, Unsubscribe
from job_feed.exceptions import TransportError
from job_feed.schema import FetchParams, FetchResult, JobStats, RemoteStatus, ScrapeRequest, ScrapeStatus

_StatusAdapter: TypeAdapter[ScrapeStatus] = TypeAdapter(RemoteStatus)


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncGenerator[str]:
    """Yield the data of each Server-Sent Event; multi-line data is joined with newlines."""
    buffer: list[str] = []
    async for line in lines:
        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer.clear()
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            buffer.append(value.removeprefix(" "))
    if buffer:
        yield "\n".join(buffer)


class HttpJobFeedClient:
    """Job feed backend over HTTP. Use as an async context manager."""

    HEADERS: MappingProxyType[str, str] = MappingProxyType({
        "User-Agent": "job-feed/0.1",
        "Accept": "application/json",
    })

    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._streams: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers=self.HEADERS,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, *_: Any) -> None:
        for task in list(self._streams):
            task.cancel()
        if self._streams:
            await asyncio.gather(*self._streams, return_exceptions=True)
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Use 'async with HttpJobFeedClient(...) as client:' context manager.")
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            RuntimeError if not used as context manager
            TransportError on network errors, timeouts, non-2xx responses or non-JSON bodies
        """
        client = self._require_client()
        try:
            resp = await client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message = _server_message(e.response) or f"{method} {path} failed with HTTP {status_code}"
            raise TransportError(message, status_code=status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e!r}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"{method} {path} returned a non-JSON body", status_code=resp.status_code) from e

    async def fetch_jobs(self, params: FetchParams) -> FetchResult:
        data = await self._request("GET", "/jobs", params=params.query_params)
        try:
            return FetchResult.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"Unexpected job list response: {e.error_count()} error(s)") from e

    async def trigger_scraping(self, request: ScrapeRequest) -> str:
        data = await self._request("POST", "/jobs/scrape", json=request.payload)
        operation_id = data.get("operationId") if isinstance(data, dict) else None
        if operation_id is None or operation_id == "":
            raise TransportError("Scrape trigger response has no operationId")
        logger.info(f"Scrape operation {operation_id} started for {request.query!r}")
        return str(operation_id)

    async def get_scraping_status(self, operation_id: str) -> ScrapeStatus:
        data = await self._request("GET", f"/jobs/scrape/{operation_id}/status")
        try:
            return _StatusAdapter.validate_python(data.get("status") if isinstance(data, dict) else None)
        except ValidationError as e:
            raise TransportError(f"Unexpected status for operation {operation_id}: {data!r}") from e

    async def get_job_stats(self) -> JobStats:
        data = await self._request("GET", "/jobs/stats")
        try:
            return JobStats.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"Unexpected stats response: {e.error_count()} error(s)") from e

    # ------------------------------------------------------------------
    # Realtime updates
    # ------------------------------------------------------------------

    def subscribe_to_job_updates(self, handler: EventHandler) -> Unsubscribe:
        """Start reading the update stream in the background.

        Must be called from a running event loop. The returned callable stops
        the stream; calling it again does nothing.
        """
        self._require_client()
        task = asyncio.create_task(self._stream(handler), name="job-updates-stream")
        self._streams.add(task)
        task.add_done_callback(self._streams.discard)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _stream(self, handler: EventHandler) -> None:
        client = self._require_client()
        attempts = 0
        while True:
            try:
                async with client.stream(
                    "GET",
                    "/jobs/stream",
                    headers={"Accept": "text/event-stream"},
                    timeout=httpx.Timeout(self._timeout, read=None),
                ) as resp:
                    resp.raise_for_status()
                    attempts = 0
                    logger.info("Job update stream connected")
                    async for data in iter_sse_data(resp.aiter_lines()):
                        await self._deliver(handler, data)
                logger.info("Job update stream closed by server")
            except httpx.HTTPError as e:
                logger.error(f"Job update stream error: {e!r}")

            if attempts >= self._reconnect_attempts:
                logger.error("Max reconnection attempts reached, job updates stopped")
                return
            delay = self._reconnect_delay * 2 ** attempts
            attempts += 1
            logger.info(f"Reconnecting job update stream in {delay:.1f}s (attempt {attempts})")
            await asyncio.sleep(delay)

    @staticmethod
    async def _deliver(handler: EventHandler, data: str) -> None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Skipping unparseable job update: {data[:200]!r}")
            return
        try:
            await handler(payload)
        except Exception:
            logger.exception("Job update handler failed")


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None
