import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from utils.cancel import CancelScope
from utils.common import USER_AGENT, basic_auth_header
from utils.errors import CancelledError, TransportError


LOG = logging.getLogger("JiraQuery.http")


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _build_retry() -> Retry:
    # Status retries belong to RetryPolicy; the adapter must not retry on its own.
    return Retry(total=0, connect=0, read=0, redirect=0, status=0, raise_on_status=False)


def build_session(email: str, api_token: str, *, pool_size: int = 10) -> requests.Session:
    """Create a session for one invocation; sessions are never shared."""
    LOG.debug("Creating HTTP session (pool=%d).", pool_size)
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        max_retries=_build_retry(),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Authorization": basic_auth_header(email, api_token),
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
    )
    return session


class Transport:
    """Performs exactly one HTTP exchange per send(); no retries, no status handling."""

    def __init__(self, session: requests.Session, *, timeout: Optional[float] = 30.0) -> None:
        self.session = session
        self.timeout = timeout

    def send(self, request, cancel: Optional[CancelScope] = None) -> TransportResponse:
        cancel = cancel or CancelScope()
        cancel.check()
        headers: Dict[str, str] = {}
        if request.body is not None:
            headers["Content-Type"] = "application/json"
        timeout = cancel.bound_timeout(self.timeout)
        try:
            resp = self.session.request(
                request.method,
                request.url,
                data=request.body.encode("utf-8") if request.body is not None else None,
                headers=headers,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            if cancel.cancelled:
                raise CancelledError("Search timed out while waiting for Jira") from exc
            raise TransportError(f"Timed out calling {request.url}: {exc}") from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {request.url} failed: {exc}") from exc
        if cancel.cancelled:
            raise CancelledError("Search cancelled")
        return TransportResponse(
            status_code=resp.status_code,
            body=resp.text,
            url=getattr(resp, "url", request.url) or request.url,
        )


def handle_http_error(resp: TransportResponse, context: str = "") -> bool:
    """
    Log a friendly message for a non-success response. Only 429 is logged as a
    warning; other statuses end the search and are reported once by the caller.
    Returns True if the caller should retry the request (rate limit), False otherwise.
    """
    code = resp.status_code
    prefix = f"{context}: " if context else ""
    message = f"{prefix}HTTP {code} ({resp.url})"

    if code == 429:
        LOG.warning("%s -> Rate limited by Jira", message)
        return True
    elif code == 401:
        LOG.debug("%s -> Unauthorized (check JIRA_USER_EMAIL and JIRA_API_TOKEN)", message)
    elif code == 403:
        LOG.debug("%s -> Forbidden (token lacks Browse Projects permission)", message)
    elif code == 404:
        LOG.debug("%s -> Endpoint not found (check JIRA_BASE_URL)", message)
    elif code == 400:
        LOG.debug("%s -> Bad request (verify JQL syntax and field names)", message)
    else:
        LOG.debug("%s -> %s", message, resp.body[:200])

    return False
