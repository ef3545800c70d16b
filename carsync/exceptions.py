# carsync/exceptions.py
"""Exception hierarchy for the crawl pipeline.

Example:
    >>> from carsync.exceptions import NotFoundError, StoreError
    >>> isinstance(NotFoundError("x"), StoreError)
    True
"""


class CarSyncError(Exception):
    """Base exception for carsync."""


class FetchError(CarSyncError):
    """Navigation to a URL failed or timed out."""

    def __init__(self, url, reason=""):
        self.url = url
        self.reason = reason
        super().__init__(f"failed to fetch {url}: {reason}" if reason else f"failed to fetch {url}")


class ExtractionFailed(CarSyncError):
    """A rendered detail page could not be turned into a record."""

    def __init__(self, url, reason=""):
        self.url = url
        self.reason = reason
        super().__init__(f"extraction failed for {url}: {reason}" if reason else f"extraction failed for {url}")


class StoreError(CarSyncError):
    """Reading or writing the persisted listings failed."""


class NotFoundError(StoreError):
    """No listing with the requested identity."""


class ConfigurationError(CarSyncError):
    """Configuration is invalid."""


class FatalCrawlError(CarSyncError):
    """A crawl stopped on an unexpected error.

    ``report`` holds the counters gathered up to the failure, after salvage.
    """

    def __init__(self, message, report=None):
        self.report = report
        super().__init__(message)
