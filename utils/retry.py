from __future__ import annotations

import logging
from typing import Callable, Optional

from utils.cancel import CancelScope
from utils.errors import ConfigurationError, RateLimitedRetry
from utils.http import TransportResponse, handle_http_error

LOG = logging.getLogger("JiraQuery.retry")


class RetryPolicy:
    """
    Re-issues a request while Jira answers HTTP 429, waiting
    backoff_base * 2^(k-1) seconds before retry k (1s, 2s, 4s by default).
    Every other status is handed back untouched on the first attempt.
    """

    def __init__(self, max_retries: int = 3, backoff_base: float = 1.0) -> None:
        if max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        if backoff_base < 0:
            raise ConfigurationError("backoff_base must be >= 0")
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    def delay_for(self, attempt: int) -> float:
        return self.backoff_base * (2 ** (attempt - 1))

    def execute(
        self,
        send: Callable[[], TransportResponse],
        cancel: Optional[CancelScope] = None,
        context: str = "",
    ) -> TransportResponse:
        cancel = cancel or CancelScope()
        retries = 0
        while True:
            response = send()
            try:
                self._check(response, retries, context)
            except RateLimitedRetry as signal:
                retries = signal.attempt
                delay = self.delay_for(retries)
                LOG.warning("Waiting %.0fs before retry %d/%d", delay, retries, self.max_retries)
                cancel.sleep(delay)
                continue
            return response

    def _check(self, response: TransportResponse, retries: int, context: str) -> None:
        if response.ok:
            return
        if not handle_http_error(response, context):
            return
        if retries >= self.max_retries:
            LOG.warning("Still rate limited after %d retries; giving up", retries)
            return
        raise RateLimitedRetry(response, retries + 1)
