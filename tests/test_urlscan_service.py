from threatdesk.errors import UpstreamUnavailable
from threatdesk.services import urlscan_service
from threatdesk.services.results import ServiceError
from threatdesk.services.urlscan_service import (
    determine_verdict,
    format_result,
    get_scan_status,
    risk_score,
    submit_scan,
)


def overall(malicious=0, suspicious=0):
    return {"verdicts": {"overall": {"malicious": malicious, "suspicious": suspicious}}}


def test_verdict_and_score():
    assert determine_verdict(overall()) == "safe"
    assert determine_verdict(overall(suspicious=1)) == "suspicious"
    assert determine_verdict(overall(malicious=1, suspicious=3)) == "malicious"
    assert risk_score(overall(suspicious=1)) == 25
    assert risk_score(overall(malicious=1, suspicious=1)) == 75
    assert risk_score(overall(malicious=3)) == 100


def test_submit_normalizes_url_and_returns_uuid(monkeypatch):
    sent = {}

    def fake_fetch_json(url, **kwargs):
        sent.update(kwargs)
        return 200, {"uuid": "abc-123"}

    monkeypatch.setattr(urlscan_service, "fetch_json", fake_fetch_json)
    submission = submit_scan("example.com", "us-key")

    assert submission["uuid"] == "abc-123"
    assert submission["status"] == "submitted"
    assert submission["progress"] == 10
    assert submission["url"] == "https://example.com"
    assert sent["json_body"] == {"url": "https://example.com", "visibility": "public"}
    assert sent["headers"] == {"API-Key": "us-key"}


def test_submit_without_key(monkeypatch):
    monkeypatch.setattr(urlscan_service, "fetch_json", lambda *a, **k: (200, {"uuid": "x"}))
    result = submit_scan("example.com", None)
    assert isinstance(result, ServiceError)
    assert result.error == "service_not_configured"


def test_submit_upstream_failure(monkeypatch):
    def boom(*args, **kwargs):
        raise UpstreamUnavailable("down")

    monkeypatch.setattr(urlscan_service, "fetch_json", boom)
    result = submit_scan("example.com", "us-key")
    assert result.error == "upstream_unavailable"


def test_status_404_means_still_processing(monkeypatch):
    monkeypatch.setattr(urlscan_service, "fetch_json", lambda *a, **k: (404, {"message": "not yet"}))
    status = get_scan_status("abc")
    assert (status.status, status.progress) == ("processing", 50)


def test_status_without_task_means_report_pending(monkeypatch):
    monkeypatch.setattr(urlscan_service, "fetch_json", lambda *a, **k: (200, {"task": {}}))
    status = get_scan_status("abc")
    assert (status.status, status.progress) == ("processing", 75)


def test_status_failure_is_an_error_status(monkeypatch):
    def boom(*args, **kwargs):
        raise UpstreamUnavailable("down")

    monkeypatch.setattr(urlscan_service, "fetch_json", boom)
    status = get_scan_status("abc")
    assert status.status == "error"
    assert status.message == "Failed to get scan status"


def test_complete_result_is_formatted(monkeypatch):
    data = {
        "task": {"url": "https://example.com", "screenshotURL": "https://urlscan.io/shot.png"},
        "stats": {"uniqRequests": 3, "uniqDomains": 2, "uniqIPs": 1},
        "lists": {
            "ips": ["93.184.216.34"],
            "domains": ["example.com", "cdn.example.com"],
            "urls": ["https://example.com", "https://cdn.example.com/a.js"],
            "countries": ["US", "US", "DE"],
        },
        "data": {"requests": [
            {"request": {"url": "http://example.com", "method": "GET", "type": "Document"},
             "response": {"status": 301, "location": "https://example.com"}},
            {"request": {"url": "https://example.com"}, "response": {"status": 200, "dataLength": 1256}},
        ]},
        **overall(suspicious=1),
    }
    monkeypatch.setattr(urlscan_service, "fetch_json", lambda *a, **k: (200, data))
    status = get_scan_status("abc")

    assert status.status == "complete"
    result = status.result
    assert result["verdict"] == "suspicious"
    assert result["score"] == 25
    assert result["screenshot_url"] == "https://urlscan.io/shot.png"
    assert result["report_url"] == "https://urlscan.io/result/abc/"
    assert result["analysis"]["countries"] == ["US", "DE"]
    assert result["redirects"] == [{"from": "http://example.com", "to": "https://example.com", "status": 301}]
    assert "Made request to: https://cdn.example.com/a.js" in result["behaviors"]
    assert "Made request to: https://example.com" not in result["behaviors"]


def test_format_result_caps_lists():
    data = {
        "task": {"url": "https://example.com"},
        "lists": {"ips": [f"10.0.0.{i}" for i in range(20)]},
        "data": {"requests": [{"request": {"url": f"https://e.com/{i}"}, "response": {"status": 200}}
                              for i in range(25)]},
    }
    result = format_result("abc", data)
    assert len(result["http_requests"]) == 10
    assert len(result["behaviors"]) == 8
