from __future__ import annotations

from typing import Optional


class JiraQueryError(Exception):
    """Base class for every failure that ends a search invocation."""


class ConfigurationError(JiraQueryError):
    """Invalid or missing input; raised before any network call."""


class TransportError(JiraQueryError):
    """The request never produced an HTTP response (DNS, reset, timeout)."""


class RateLimitedRetry(JiraQueryError):
    """
    HTTP 429 seen by the retry loop.

    Only ever raised and caught inside RetryPolicy; callers get the final
    response instead.
    """

    def __init__(self, response, attempt: int) -> None:
        super().__init__(f"Rate limited on attempt {attempt}")
        self.response = response
        self.attempt = attempt


class ApiError(JiraQueryError):
    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Jira API request failed with status {status_code}: {message}")


class CancelledError(JiraQueryError):
    """The invocation was cancelled or ran past its deadline."""
