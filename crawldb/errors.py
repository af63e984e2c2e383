"""Exception hierarchy for the CrawlDB injector."""

from typing import Optional


class InjectorError(Exception):
    """Base class for all errors raised by the injector package."""


class SetupError(InjectorError):
    """The backing store could not be created or opened."""


class InjectionError(InjectorError):
    """A row could not be written to the CrawlDB."""


class InvalidUrlError(InjectionError, ValueError):
    """Raised when a URL cannot be turned into a row key."""

    def __init__(self, url: str, reason: Optional[str] = None):
        self.url = url
        self.reason = reason
        message = f"Not a valid URL: {url!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
