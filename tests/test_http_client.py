import http.client
import io
import json
from urllib.error import HTTPError, URLError

import pytest

from threatdesk.errors import UpstreamAuthError, UpstreamUnavailable
from threatdesk.services import http_client, urlscan_service
from threatdesk.services.http_client import fetch, fetch_json, fetch_text


class FakeResponse:
    def __init__(self, body=b"", status=200, read_error=None):
        self.status = status
        self.body = body
        self.read_error = read_error

    def read(self):
        if self.read_error is not None:
            raise self.read_error
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def fake_urlopen(monkeypatch, response=None, raises=None):
    sent = []

    def urlopen(req, timeout=None):
        sent.append((req, timeout))
        if raises is not None:
            raise raises
        return response

    monkeypatch.setattr(http_client, "urlopen", urlopen)
    return sent


def http_error(code, body=b""):
    return HTTPError("https://api.example/x", code, "error", {}, io.BytesIO(body))


def test_json_post_sends_one_request(monkeypatch):
    sent = fake_urlopen(monkeypatch, FakeResponse(b'{"uuid": "abc"}'))
    status, payload = fetch_json("https://api.example/scan", method="POST", headers={"API-Key": "k"},
                                 json_body={"url": "https://example.com"}, timeout=7)

    assert (status, payload) == (200, {"uuid": "abc"})
    [(req, timeout)] = sent
    assert timeout == 7
    assert req.get_method() == "POST"
    assert json.loads(req.data) == {"url": "https://example.com"}
    assert req.get_header("Content-type") == "application/json"
    assert req.get_header("User-agent") == http_client.USER_AGENT
    assert req.get_header("Api-key") == "k"


@pytest.mark.parametrize("code,exc_type,text", [
    (401, UpstreamAuthError, "rejected the configured API key"),
    (403, UpstreamAuthError, "rejected the configured API key"),
    (429, UpstreamUnavailable, "rate limit exceeded"),
    (500, UpstreamUnavailable, "returned HTTP 500"),
    (404, UpstreamUnavailable, "returned HTTP 404"),
])
def test_http_errors_are_mapped(monkeypatch, code, exc_type, text):
    fake_urlopen(monkeypatch, raises=http_error(code))
    with pytest.raises(exc_type) as info:
        fetch("https://api.example/x", service="Example")
    assert text in info.value.message
    assert info.value.message.startswith("Example")


def test_auth_errors_report_not_configured(monkeypatch):
    fake_urlopen(monkeypatch, raises=http_error(401))
    with pytest.raises(UpstreamAuthError) as info:
        fetch("https://api.example/x")
    assert info.value.kind == "service_not_configured"


def test_allowed_status_is_passed_through(monkeypatch):
    fake_urlopen(monkeypatch, raises=http_error(404, b'{"message": "not yet"}'))
    status, payload = fetch_json("https://api.example/x", allow_status=(404,))
    assert (status, payload) == (404, {"message": "not yet"})


@pytest.mark.parametrize("error", [
    URLError("Name or service not known"),
    TimeoutError("timed out"),
    ConnectionResetError("reset by peer"),
])
def test_network_errors_are_upstream_unavailable(monkeypatch, error):
    fake_urlopen(monkeypatch, raises=error)
    with pytest.raises(UpstreamUnavailable) as info:
        fetch("https://api.example/x", service="Example")
    assert info.value.message == "Network error connecting to Example. Please try again."


@pytest.mark.parametrize("error", [
    http.client.BadStatusLine("garbage"),
    http.client.RemoteDisconnected("closed"),
    UnicodeEncodeError("ascii", "m\xfcnchen.de", 1, 2, "ordinal not in range(128)"),
])
def test_protocol_and_request_errors_are_upstream_unavailable(monkeypatch, error):
    fake_urlopen(monkeypatch, raises=error)
    with pytest.raises(UpstreamUnavailable):
        fetch("https://api.example/x")


def test_truncated_body_is_upstream_unavailable(monkeypatch):
    fake_urlopen(monkeypatch, FakeResponse(read_error=http.client.IncompleteRead(b"{\"da")))
    with pytest.raises(UpstreamUnavailable):
        fetch_json("https://api.example/x")


def test_malformed_url_is_upstream_unavailable(monkeypatch):
    sent = fake_urlopen(monkeypatch, FakeResponse(b"{}"))
    with pytest.raises(UpstreamUnavailable):
        fetch("not a url")
    assert sent == []


def test_non_json_body(monkeypatch):
    fake_urlopen(monkeypatch, FakeResponse(b"<html>oops</html>"))
    with pytest.raises(UpstreamUnavailable) as info:
        fetch_json("https://api.example/x", service="Example")
    assert info.value.message == "Invalid response from Example"


def test_empty_body_is_none(monkeypatch):
    fake_urlopen(monkeypatch, FakeResponse(b"", status=204))
    assert fetch_json("https://api.example/x") == (204, None)


def test_fetch_text_replaces_bad_bytes(monkeypatch):
    fake_urlopen(monkeypatch, FakeResponse(b"<rss>caf\xe9</rss>"))
    assert fetch_text("https://feed.example/rss") == "<rss>caf\ufffd</rss>"


def test_truncated_status_body_becomes_error_status(monkeypatch):
    fake_urlopen(monkeypatch, FakeResponse(read_error=http.client.IncompleteRead(b"")))
    status = urlscan_service.get_scan_status("abc")
    assert status.status == "error"
    assert status.message == "Failed to get scan status"
