"""
Query descriptor, request encoding and GET/POST selection for the
/rest/api/3/search/jql endpoint.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from utils.common import SEARCH_API_PATH, URL_MAX_LENGTH
from utils.errors import ConfigurationError

LOG = logging.getLogger("JiraQuery.query")


class SearchMethod(str, Enum):
    GET = "get"
    POST = "post"
    AUTO = "auto"


def parse_method(value: Optional[str], default: SearchMethod = SearchMethod.AUTO) -> SearchMethod:
    if isinstance(value, SearchMethod):
        return value
    if not value:
        return default
    try:
        return SearchMethod(value.strip().lower())
    except ValueError:
        raise ConfigurationError(f"Invalid HTTP method: {value}") from None


def _unique(values: Iterable[Any]) -> Tuple[Any, ...]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class QueryDescriptor:
    jql: str
    next_page_token: Optional[str] = None
    max_results: int = 50
    fields: Tuple[str, ...] = field(default_factory=tuple)
    expand: Tuple[str, ...] = field(default_factory=tuple)
    properties: Tuple[str, ...] = field(default_factory=tuple)
    fields_by_keys: bool = False
    fail_fast: bool = False
    reconcile_issues: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.jql or not self.jql.strip():
            raise ConfigurationError("jql must not be empty")
        if self.max_results <= 0:
            raise ConfigurationError(f"maxResults must be greater than zero, got {self.max_results}")
        # Accept any iterable for the selector collections; store ordered, unique tuples.
        object.__setattr__(self, "fields", _unique(self.fields))
        object.__setattr__(self, "expand", _unique(self.expand))
        object.__setattr__(self, "properties", _unique(self.properties))
        object.__setattr__(self, "reconcile_issues", tuple(int(i) for i in self.reconcile_issues))

    def with_token(self, token: Optional[str]) -> "QueryDescriptor":
        return replace(self, next_page_token=token)


@dataclass(frozen=True)
class EncodedRequest:
    url: str
    body: Optional[str] = None

    @property
    def method(self) -> str:
        return "POST" if self.body is not None else "GET"


def search_endpoint(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{SEARCH_API_PATH}"


def _query_params(query: QueryDescriptor) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = [("jql", query.jql)]
    if query.next_page_token:
        params.append(("nextPageToken", query.next_page_token))
    params.append(("maxResults", str(query.max_results)))
    if query.fields:
        params.append(("fields", ",".join(query.fields)))
    if query.expand:
        params.append(("expand", ",".join(query.expand)))
    if query.properties:
        params.append(("properties", ",".join(query.properties)))
    if query.fields_by_keys:
        params.append(("fieldsByKeys", "true"))
    if query.fail_fast:
        params.append(("failFast", "true"))
    if query.reconcile_issues:
        params.append(("reconcileIssues", ",".join(str(i) for i in query.reconcile_issues)))
    return params


def encode_get(base_url: str, query: QueryDescriptor) -> EncodedRequest:
    prepared = requests.PreparedRequest()
    try:
        prepared.prepare_url(search_endpoint(base_url), _query_params(query))
    except requests.RequestException as exc:
        raise ConfigurationError(f"Invalid Jira base URL {base_url!r}: {exc}") from exc
    return EncodedRequest(url=prepared.url)


def encode_post(base_url: str, query: QueryDescriptor) -> EncodedRequest:
    body: Dict[str, Any] = {"jql": query.jql}
    if query.next_page_token:
        body["nextPageToken"] = query.next_page_token
    body["maxResults"] = query.max_results
    if query.fields:
        body["fields"] = list(query.fields)
    if query.expand:
        # The POST endpoint takes expand as a single string, unlike fields/properties.
        body["expand"] = ", ".join(query.expand)
    if query.properties:
        body["properties"] = list(query.properties)
    if query.fields_by_keys:
        body["fieldsByKeys"] = True
    if query.fail_fast:
        body["failFast"] = True
    if query.reconcile_issues:
        body["reconcileIssues"] = list(query.reconcile_issues)

    prepared = requests.PreparedRequest()
    try:
        prepared.prepare_url(search_endpoint(base_url), None)
    except requests.RequestException as exc:
        raise ConfigurationError(f"Invalid Jira base URL {base_url!r}: {exc}") from exc
    return EncodedRequest(url=prepared.url, body=json.dumps(body))


def select_method(
    base_url: str,
    query: QueryDescriptor,
    method: SearchMethod,
    threshold: int = URL_MAX_LENGTH,
) -> SearchMethod:
    """
    Resolve AUTO to GET or POST by measuring the GET URL. GET and POST pass
    through. Pure: the probe request is thrown away.
    """
    method = parse_method(method)
    if method is not SearchMethod.AUTO:
        return method
    probe = encode_get(base_url, query)
    if len(probe.url) > threshold:
        return SearchMethod.POST
    return SearchMethod.GET


def encode_request(
    base_url: str,
    query: QueryDescriptor,
    method: SearchMethod,
    threshold: int = URL_MAX_LENGTH,
) -> EncodedRequest:
    method = parse_method(method)
    if method is SearchMethod.GET:
        request = encode_get(base_url, query)
        if len(request.url) > threshold:
            LOG.warning(
                "GET request URL length (%d) exceeds maximum recommended size (%d). "
                "Consider using POST method for large queries.",
                len(request.url),
                threshold,
            )
        return request
    if method is SearchMethod.POST:
        return encode_post(base_url, query)
    raise ConfigurationError(f"Unsupported HTTP method: {method.value}")
