"""Scrape operation lifecycle: trigger, poll until a terminal status, refresh.

Only one operation is tracked per controller. The poll loop is a single
asyncio task that ends on a terminal status, on a transport failure or on
``cancel()``.
"""
import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from job_feed.client import JobFeedClient, Unsubscribe
from job_feed.exceptions import JobFeedError, OperationConflict, TransportError
from job_feed.schema import ScrapeOperation, ScrapeRequest, ScrapeStatus

type RefreshCallback = Callable[[], Awaitable[Any]]
type StatusCallback = Callable[[ScrapeStatus], None]


class ScrapeHandle:
    """Caller-side view of one scrape operation."""

    def __init__(self, operation: ScrapeOperation, controller: "ScrapeController") -> None:
        self.operation = operation
        self.log = logger.bind(operation=operation.operation_id)
        self.history: list[ScrapeStatus] = [ScrapeStatus.idle, operation.status]
        self._controller = controller
        self._listeners: list[StatusCallback] = []
        self._done = asyncio.Event()
        # set once a completed status is being applied (refresh in flight)
        self.settling = False

    @property
    def operation_id(self) -> str:
        return self.operation.operation_id

    @property
    def status(self) -> ScrapeStatus:
        return self.operation.status

    @property
    def done(self) -> bool:
        return self.operation.status.is_terminal

    def on_status(self, callback: StatusCallback) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def wait(self) -> ScrapeStatus:
        """Wait for the terminal status."""
        await self._done.wait()
        return self.operation.status

    def cancel(self) -> bool:
        return self._controller.cancel(self)

    def transition(self, status: ScrapeStatus) -> bool:
        """Move to ``status`` if the state machine allows it."""
        current = self.operation.status
        if current.is_terminal or status == current:
            return False
        if status is ScrapeStatus.idle or (status is ScrapeStatus.pending and current is ScrapeStatus.running):
            return False

        self.operation.status = status
        self.history.append(status)
        self.log.info(f"Scrape {self.operation_id}: {current} -> {status}")
        for callback in list(self._listeners):
            try:
                callback(status)
            except Exception:
                self.log.exception(f"Status listener failed for scrape {self.operation_id}")
        if status.is_terminal:
            self._done.set()
        return True


class ScrapeController:
    def __init__(
        self,
        client: JobFeedClient,
        on_completed: RefreshCallback,
        poll_interval: float = 5.0,
        request_timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._on_completed = on_completed
        self._poll_interval = poll_interval
        self._request_timeout = request_timeout
        self._handle: ScrapeHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._starting = False
        self._abandon_start = False

    @property
    def handle(self) -> ScrapeHandle | None:
        return self._handle

    @property
    def status(self) -> ScrapeStatus:
        return self._handle.status if self._handle else ScrapeStatus.idle

    @property
    def active(self) -> bool:
        """True while an operation is starting or has not reached a terminal status."""
        return self._starting or (self._handle is not None and not self._handle.done)

    @property
    def polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def trigger(self, request: ScrapeRequest) -> ScrapeHandle:
        """Start a remote scrape and poll it in the background.

        Returns once the backend has answered the trigger call.
        Raises:
            OperationConflict if an operation is already in progress
            TransportError if the trigger call fails
        """
        if self.active:
            raise OperationConflict(f"Scrape operation already in progress ({self.status})")

        self._starting = True
        self._abandon_start = False
        try:
            operation_id = await self._client.trigger_scraping(request)
        finally:
            self._starting = False

        handle = ScrapeHandle(ScrapeOperation(operation_id=operation_id, request=request), self)
        self._handle = handle
        if self._abandon_start:
            handle.log.info(f"Scrape {operation_id} was cancelled while starting")
            handle.transition(ScrapeStatus.failed)
            return handle

        self._task = asyncio.create_task(self._poll(handle), name=f"scrape-poll-{operation_id}")
        return handle

    def cancel(self, handle: ScrapeHandle | None = None) -> bool:
        """Abandon the current operation. It ends ``failed`` whatever the backend reports."""
        if self._starting and handle is None:
            self._abandon_start = True
            return True

        current = self._handle
        if current is None or current.done or (handle is not None and handle is not current):
            return False

        self._stop_polling()
        current.transition(ScrapeStatus.failed)
        current.log.info(f"Scrape {current.operation_id} cancelled")
        return True

    async def apply_remote_status(self, status: ScrapeStatus) -> None:
        """Apply a status pushed by the backend instead of polled."""
        handle = self._handle
        if handle is None or handle.done:
            logger.debug(f"Ignoring scrape progress '{status}': no operation in progress")
            return
        await self._apply(handle, status)

    async def _poll(self, handle: ScrapeHandle) -> None:
        try:
            while not handle.done:
                await asyncio.sleep(self._poll_interval)
                try:
                    async with asyncio.timeout(self._request_timeout):
                        status = await self._client.get_scraping_status(handle.operation_id)
                except TimeoutError:
                    handle.log.error(f"Status poll for scrape {handle.operation_id} timed out after {self._request_timeout}s")
                    self._finish(handle, ScrapeStatus.failed)
                    return
                except TransportError as e:
                    handle.log.error(f"Status poll for scrape {handle.operation_id} failed: {e}")
                    self._finish(handle, ScrapeStatus.failed)
                    return

                if await self._apply(handle, status):
                    return
        except Exception:
            handle.log.exception(f"Poll loop for scrape {handle.operation_id} crashed")
            self._finish(handle, ScrapeStatus.failed)
        finally:
            if self._task is asyncio.current_task():
                self._task = None

    async def _apply(self, handle: ScrapeHandle, status: ScrapeStatus) -> bool:
        """Apply a remote status. Returns True once the operation is over."""
        if handle.done or handle.settling:
            return True

        match status:
            case ScrapeStatus.completed:
                handle.settling = True
                self._stop_polling()
                # an interrupted or crashed refresh still ends the operation
                outcome = ScrapeStatus.failed
                try:
                    await self._on_completed()
                    outcome = ScrapeStatus.completed
                except JobFeedError as e:
                    handle.log.error(f"Refresh after scrape {handle.operation_id} failed, keeping current jobs: {e}")
                    outcome = ScrapeStatus.completed
                finally:
                    if outcome is ScrapeStatus.failed:
                        handle.log.warning(f"Refresh after scrape {handle.operation_id} was interrupted")
                    handle.transition(outcome)
                return True
            case ScrapeStatus.failed:
                self._finish(handle, ScrapeStatus.failed)
                return True
            case _:
                handle.transition(status)
                return handle.done

    def _finish(self, handle: ScrapeHandle, status: ScrapeStatus) -> None:
        self._stop_polling()
        handle.transition(status)

    def _stop_polling(self) -> None:
        """Cancel the poll task unless we are running inside it."""
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        self._task = None
        task.cancel()
