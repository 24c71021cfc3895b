"""Entry point for running one JQL search end to end."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from search.paginator import Paginator
from search.query import QueryDescriptor, SearchMethod
from utils import common
from utils.cancel import CancelScope
from utils.http import Transport, build_session
from utils.retry import RetryPolicy

LOG = logging.getLogger("JiraQuery.client")


def create_transport(
    email: str,
    api_token: str,
    *,
    timeout: Optional[float] = None,
    pool_size: Optional[int] = None,
) -> Transport:
    session = build_session(
        email,
        api_token,
        pool_size=pool_size or common.HTTP_POOL_SIZE,
    )
    return Transport(session, timeout=timeout if timeout is not None else common.API_TIMEOUT)


def search_jql(
    base_url: str,
    email: str,
    api_token: str,
    query: QueryDescriptor,
    *,
    method: SearchMethod = SearchMethod.AUTO,
    cap: Optional[int] = None,
    cancel: Optional[CancelScope] = None,
    request_timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    pool_size: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> List[Dict[str, Any]]:
    """
    Run `query` against `base_url` and return every matching issue in server
    order, at most `cap` of them. Raises a JiraQueryError subclass on failure.
    """
    base_url = common.normalize_base_url(base_url)
    transport = create_transport(email, api_token, timeout=request_timeout, pool_size=pool_size)
    retry_policy = RetryPolicy(
        max_retries=common.HTTP_MAX_RETRIES if max_retries is None else max_retries,
        backoff_base=common.HTTP_BACKOFF_BASE if backoff_base is None else backoff_base,
    )
    paginator = Paginator(base_url, transport, method=method, retry_policy=retry_policy, logger=logger)
    try:
        return paginator.search(query, cap=cap, cancel=cancel)
    finally:
        transport.session.close()


def issue_ids(issues: List[Any]) -> List[Optional[str]]:
    """One entry per issue, in order; None where a record carries no id."""
    ids: List[Optional[str]] = []
    for issue in issues:
        issue_id = issue.get("id") if isinstance(issue, dict) else None
        ids.append(None if issue_id is None else str(issue_id))
    return ids
