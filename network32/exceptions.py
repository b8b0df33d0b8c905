"""Errors raised by the feed core. HTTP mapping lives in network32.main."""


class FeedError(Exception):
    """Base class for feed errors."""


class InvalidArgumentError(FeedError):
    """Caller contract violation: rejected before any fetch is issued."""


class UpstreamFetchFailure(FeedError):
    """The store failed and there was nothing left to degrade to."""

    def __init__(self, message: str, failed_types: list | None = None):
        super().__init__(message)
        self.failed_types = list(failed_types or [])
