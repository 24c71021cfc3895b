import json
from typing import List, Optional

import pytest

from utils.cancel import CancelScope
from utils.http import TransportResponse

BASE_URL = "https://company.atlassian.net"


def make_response(status: int = 200, payload=None, body: Optional[str] = None) -> TransportResponse:
    if body is None:
        body = json.dumps(payload if payload is not None else {})
    return TransportResponse(status_code=status, body=body, url=f"{BASE_URL}/rest/api/3/search/jql")


def page(issues, token: Optional[str] = None, **extra) -> TransportResponse:
    payload = {"issues": issues, **extra}
    if token is not None:
        payload["nextPageToken"] = token
    return make_response(200, payload)


class ScriptedTransport:
    """Returns queued responses in order and remembers every request sent."""

    def __init__(self, responses: List[TransportResponse]):
        self.responses = list(responses)
        self.requests = []

    def send(self, request, cancel=None):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("unexpected extra request")
        return self.responses.pop(0)


class RecordingScope(CancelScope):
    """CancelScope that records backoff delays instead of waiting."""

    def __init__(self):
        super().__init__()
        self.delays = []

    def sleep(self, seconds: float) -> None:
        self.check()
        self.delays.append(seconds)


@pytest.fixture
def scope():
    return RecordingScope()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in (
        "JIRA_BASE_URL",
        "JIRA_USER_EMAIL",
        "JIRA_API_TOKEN",
        "JIRA_JQL",
        "JIRA_PAGE_SIZE",
        "JIRA_API_TIMEOUT",
        "JIRA_HTTP_POOL_SIZE",
        "JIRA_HTTP_MAX_RETRIES",
        "JIRA_HTTP_BACKOFF_BASE",
        "JIRA_OUTPUT_FILE",
        "GITHUB_OUTPUT",
        "GITHUB_ACTIONS",
    ):
        monkeypatch.delenv(key, raising=False)
    import os

    for key in list(os.environ):
        if key.startswith("INPUT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
