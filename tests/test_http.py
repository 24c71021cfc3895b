import base64
import logging
import threading
from unittest.mock import MagicMock

import pytest
import requests

from search.query import EncodedRequest
from utils.cancel import CancelScope
from utils.common import basic_auth_header, normalize_base_url
from utils.errors import CancelledError, TransportError
from utils.http import Transport, TransportResponse, build_session, handle_http_error

URL = "https://company.atlassian.net/rest/api/3/search/jql"


def _session(status=200, text='{"issues": []}'):
    session = MagicMock(spec=requests.Session)
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.url = URL
    resp.headers = {}
    session.request.return_value = resp
    return session


class TestTransport:
    def test_get_request(self):
        session = _session()
        response = Transport(session, timeout=12).send(EncodedRequest(url=URL + "?jql=x"))
        assert response == TransportResponse(status_code=200, body='{"issues": []}', url=URL)
        args, kwargs = session.request.call_args
        assert args == ("GET", URL + "?jql=x")
        assert kwargs["data"] is None
        assert "Content-Type" not in kwargs["headers"]
        assert kwargs["timeout"] == 12

    def test_post_request_sets_content_type(self):
        session = _session()
        Transport(session).send(EncodedRequest(url=URL, body='{"jql": "x"}'))
        args, kwargs = session.request.call_args
        assert args[0] == "POST"
        assert kwargs["data"] == b'{"jql": "x"}'
        assert kwargs["headers"]["Content-Type"] == "application/json"

    def test_status_codes_are_not_interpreted(self):
        response = Transport(_session(status=500, text="down")).send(EncodedRequest(url=URL))
        assert response.status_code == 500
        assert not response.ok

    def test_connection_error_becomes_transport_error(self):
        session = _session()
        session.request.side_effect = requests.ConnectionError("reset by peer")
        with pytest.raises(TransportError, match="reset by peer"):
            Transport(session).send(EncodedRequest(url=URL))

    def test_timeout_becomes_transport_error(self):
        session = _session()
        session.request.side_effect = requests.ReadTimeout("slow")
        with pytest.raises(TransportError):
            Transport(session).send(EncodedRequest(url=URL))

    def test_cancelled_scope_skips_network(self):
        event = threading.Event()
        event.set()
        session = _session()
        with pytest.raises(CancelledError):
            Transport(session).send(EncodedRequest(url=URL), CancelScope(event=event))
        session.request.assert_not_called()

    def test_cancel_while_in_flight_discards_response(self):
        scope = CancelScope()
        session = _session()
        resp = session.request.return_value

        def cancel_then_return(*args, **kwargs):
            scope.cancel()
            return resp

        session.request.side_effect = cancel_then_return
        with pytest.raises(CancelledError):
            Transport(session).send(EncodedRequest(url=URL), scope)

    def test_cancel_while_in_flight_then_read_timeout(self):
        scope = CancelScope()
        session = _session()

        def cancel_then_time_out(*args, **kwargs):
            scope.cancel()
            raise requests.ReadTimeout("slow")

        session.request.side_effect = cancel_then_time_out
        with pytest.raises(CancelledError):
            Transport(session).send(EncodedRequest(url=URL), scope)

    def test_deadline_expiring_in_flight_is_cancellation(self):
        scope = CancelScope(timeout=0.01)
        session = _session()

        def wait_past_deadline(*args, **kwargs):
            threading.Event().wait(0.05)
            raise requests.ReadTimeout("slow")

        session.request.side_effect = wait_past_deadline
        with pytest.raises(CancelledError, match="timed out"):
            Transport(session).send(EncodedRequest(url=URL), scope)

    def test_timeout_is_bounded_by_deadline(self):
        session = _session()
        Transport(session, timeout=30).send(EncodedRequest(url=URL), CancelScope(timeout=5))
        assert session.request.call_args.kwargs["timeout"] <= 5


class TestSession:
    def test_default_headers(self):
        session = build_session("user@example.com", "secret-token")
        expected = base64.b64encode(b"user@example.com:secret-token").decode()
        assert session.headers["Authorization"] == f"Basic {expected}"
        assert session.headers["Accept"] == "application/json"
        assert "Content-Type" not in session.headers
        session.close()

    def test_adapter_does_not_retry(self):
        session = build_session("a", "b")
        adapter = session.get_adapter("https://company.atlassian.net")
        assert adapter.max_retries.total == 0
        session.close()

    def test_sessions_are_not_shared(self):
        assert build_session("a", "b") is not build_session("a", "b")


def test_basic_auth_header():
    assert basic_auth_header("a", "b") == "Basic YTpi"


@pytest.mark.parametrize("url,expected", [
    ("https://company.atlassian.net/", "https://company.atlassian.net"),
    ("https://company.atlassian.net///", "https://company.atlassian.net"),
    ("https://company.atlassian.net", "https://company.atlassian.net"),
    ("https://company.atlassian.net/path/", "https://company.atlassian.net/path"),
])
def test_normalize_base_url(url, expected):
    assert normalize_base_url(url) == expected


def test_handle_http_error_only_retries_rate_limit():
    assert handle_http_error(TransportResponse(429, "")) is True
    for status in (400, 401, 403, 404, 500):
        assert handle_http_error(TransportResponse(status, "")) is False


@pytest.mark.parametrize("status", [400, 401, 403, 404, 500])
def test_fatal_statuses_are_not_logged_as_warnings(caplog, status):
    with caplog.at_level(logging.DEBUG, logger="JiraQuery.http"):
        handle_http_error(TransportResponse(status, "boom"), "search page 1")
    assert [r.levelno for r in caplog.records] == [logging.DEBUG]


def test_rate_limit_is_logged_as_warning(caplog):
    with caplog.at_level(logging.DEBUG, logger="JiraQuery.http"):
        handle_http_error(TransportResponse(429, ""))
    assert [r.levelno for r in caplog.records] == [logging.WARNING]
