from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from search.query import QueryDescriptor, SearchMethod, encode_request, parse_method, select_method
from search.responses import decode_page
from utils.cancel import CancelScope
from utils.common import URL_MAX_LENGTH
from utils.http import Transport
from utils.retry import RetryPolicy

LOG = logging.getLogger("JiraQuery.search")


class ResultCollector:
    """Append-only issue list in server order, truncated at the cap."""

    def __init__(self, cap: Optional[int] = None) -> None:
        if cap is not None and cap <= 0:
            raise ValueError("cap must be greater than zero")
        self.cap = cap
        self._issues: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._issues)

    @property
    def full(self) -> bool:
        return self.cap is not None and len(self._issues) >= self.cap

    def extend(self, issues: Iterable[Dict[str, Any]]) -> int:
        """Add issues until the cap; returns how many were kept."""
        incoming = list(issues)
        if self.cap is not None:
            incoming = incoming[: max(0, self.cap - len(self._issues))]
        self._issues.extend(incoming)
        return len(incoming)

    @property
    def issues(self) -> List[Dict[str, Any]]:
        return list(self._issues)


class Paginator:
    """
    Drives the nextPageToken loop for one query.

    The method (GET/POST) is resolved once up front; every page then goes
    through the retry policy and is decoded before the next token is used.
    """

    def __init__(
        self,
        base_url: str,
        transport: Transport,
        *,
        method: SearchMethod = SearchMethod.AUTO,
        retry_policy: Optional[RetryPolicy] = None,
        url_max_length: int = URL_MAX_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.method = parse_method(method)
        self.retry_policy = retry_policy or RetryPolicy()
        self.url_max_length = url_max_length
        self.log = logger or LOG

    def search(
        self,
        query: QueryDescriptor,
        cap: Optional[int] = None,
        cancel: Optional[CancelScope] = None,
    ) -> List[Dict[str, Any]]:
        cancel = cancel or CancelScope()
        collector = ResultCollector(cap)
        method = select_method(self.base_url, query, self.method, self.url_max_length)
        if self.method is SearchMethod.AUTO:
            self.log.debug("Auto-selected HTTP method: %s", method.value)
        self.log.debug("Starting Jira JQL search with method: %s", method.value)

        # Each page starts from the caller's token, then whatever the server returned.
        page_query = query
        page_num = 0
        while True:
            page_num += 1
            request = encode_request(self.base_url, page_query, method, self.url_max_length)
            self.log.debug("%s request URL: %s", request.method, request.url)
            if request.body is not None:
                self.log.debug("%s request Body: %s", request.method, request.body)

            response = self.retry_policy.execute(
                lambda: self.transport.send(request, cancel),
                cancel,
                context=f"search page {page_num}",
            )
            page = decode_page(response)
            self.log.debug("Fetched %d issues from Jira (page %d)", len(page.issues), page_num)

            if not page.issues:
                self.log.debug("No more issues returned by Jira")
                break
            collector.extend(page.issues)
            if collector.full:
                self.log.debug("Reached result cap of %d issues", collector.cap)
                break
            if not page.next_page_token:
                break
            page_query = page_query.with_token(page.next_page_token)

        self.log.debug("Search finished after %d request(s) with %d issues", page_num, len(collector))
        return collector.issues
