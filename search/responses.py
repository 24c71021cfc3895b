from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from utils.errors import ApiError
from utils.http import TransportResponse


@dataclass(frozen=True)
class Page:
    issues: List[Dict[str, Any]] = field(default_factory=list)
    next_page_token: Optional[str] = None


def extract_error_message(body: str) -> str:
    """Best-effort message from a Jira error body; falls back to the raw text."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return body
    if not isinstance(payload, dict):
        return body
    messages = payload.get("errorMessages")
    if messages:
        if isinstance(messages, list):
            return "; ".join(str(m) for m in messages)
        return str(messages)
    if payload.get("message"):
        return str(payload["message"])
    return body


def raise_for_status(response: TransportResponse) -> None:
    if not response.ok:
        raise ApiError(response.status_code, extract_error_message(response.body))


def decode_page(response: TransportResponse) -> Page:
    raise_for_status(response)
    try:
        data = json.loads(response.body)
    except ValueError as exc:
        raise ApiError(response.status_code, f"Response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ApiError(response.status_code, "Response is not a JSON object")
    issues = data.get("issues")
    if issues is None:
        issues = []
    if not isinstance(issues, list):
        raise ApiError(response.status_code, "Response field 'issues' is not a list")
    token = data.get("nextPageToken") or None
    return Page(issues=issues, next_page_token=token)
