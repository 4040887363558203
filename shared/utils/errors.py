"""
Domain errors and operation outcomes shared by MoodFeed services.
"""

from enum import Enum


class MoodFeedError(Exception):
    """Base class for MoodFeed errors."""


class ProviderUnavailable(MoodFeedError):
    """An upstream news provider timed out or answered with an error."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class StoreUnavailable(MoodFeedError):
    """The article or user store could not be reached. Callers may retry."""

    retry_after = 5


class InvalidRequest(MoodFeedError):
    """Request parameters were rejected before touching any store."""


class Outcome(str, Enum):
    """Non-exceptional results of store and scheduler operations."""

    OK = "ok"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
