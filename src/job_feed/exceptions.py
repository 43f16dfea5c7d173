"""Error taxonomy of the job feed."""


class JobFeedError(Exception):
    """Base class for all job feed errors."""


class TransportError(JobFeedError):
    """A fetch, trigger, status or stats call failed (network, non-2xx, timeout, bad body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OperationConflict(JobFeedError):
    """A scrape was requested while another one is still in progress."""


class MalformedEvent(JobFeedError):
    """A realtime payload failed shape validation."""
