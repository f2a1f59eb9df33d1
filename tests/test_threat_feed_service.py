from threatdesk.errors import UpstreamUnavailable
from threatdesk.services import threat_feed_service
from threatdesk.services.threat_feed_service import fetch_threat_feed, fetch_threatfox, map_threatfox_type


THREATFOX_PAYLOAD = {
    "query_status": "ok",
    "data": [
        {
            "id": "1001",
            "ioc": "185.220.101.4:443",
            "ioc_type": "ip:port",
            "threat_type": "botnet_cc",
            "malware_printable": "Cobalt Strike",
            "confidence_level": 75,
            "first_seen": "2024-05-01 10:00:00 UTC",
            "tags": ["c2"],
        },
        {"id": "1002", "ioc": "evil.example", "ioc_type": "domain", "threat_type": "payload_delivery"},
    ],
}


def test_threatfox_type_mapping():
    assert map_threatfox_type("sha256_hash") == "hash"
    assert map_threatfox_type("ip:port") == "ip"
    assert map_threatfox_type("mystery") == "unknown"


def test_threatfox_entries_are_normalized(monkeypatch):
    calls = []

    def fake_fetch_json(url, **kwargs):
        calls.append(kwargs)
        return 200, THREATFOX_PAYLOAD

    monkeypatch.setattr(threat_feed_service, "fetch_json", fake_fetch_json)
    first, second = fetch_threatfox("tf-key")

    assert calls[0]["json_body"] == {"query": "get_iocs", "days": 1}
    assert calls[0]["headers"] == {"Auth-Key": "tf-key"}
    assert first.type == "ip"
    assert first.source == "threatfox"
    assert first.malware_family == "Cobalt Strike"
    assert first.confidence == 75
    assert first.source_url == "https://threatfox.abuse.ch/ioc/1001/"
    assert second.confidence == 90
    assert second.description == "ThreatFox IOC: payload_delivery"


def test_threatfox_caps_at_ten(monkeypatch):
    many = {"data": [{"id": str(i), "ioc": f"{i}.example", "ioc_type": "domain"} for i in range(30)]}
    monkeypatch.setattr(threat_feed_service, "fetch_json", lambda *a, **k: (200, many))
    assert len(fetch_threatfox()) == 10


def test_threatfox_no_result(monkeypatch):
    monkeypatch.setattr(threat_feed_service, "fetch_json",
                        lambda *a, **k: (200, {"query_status": "no_result", "data": "Your search did not yield any results"}))
    assert fetch_threatfox() == []


def test_otx_is_skipped_without_key(monkeypatch):
    urls = []

    def fake_fetch_json(url, **kwargs):
        urls.append(url)
        return 200, THREATFOX_PAYLOAD

    monkeypatch.setattr(threat_feed_service, "fetch_json", fake_fetch_json)
    indicators, errors = fetch_threat_feed(otx_key="")

    assert len(indicators) == 2
    assert errors == []
    assert urls == [threat_feed_service.THREATFOX_URL]


def test_failing_source_reports_error_and_others_still_count(monkeypatch):
    otx_payload = {"results": [{
        "name": "Phishing wave",
        "tags": ["phishing"],
        "indicators": [{"indicator": "bad.example", "type": "hostname"}],
    }]}

    def fake_fetch_json(url, **kwargs):
        if url == threat_feed_service.THREATFOX_URL:
            raise UpstreamUnavailable("ThreatFox returned HTTP 500")
        assert kwargs["headers"] == {"X-OTX-API-KEY": "otx-key"}
        return 200, otx_payload

    monkeypatch.setattr(threat_feed_service, "fetch_json", fake_fetch_json)
    indicators, errors = fetch_threat_feed(otx_key="otx-key")

    assert [(i.indicator, i.type, i.source) for i in indicators] == [("bad.example", "domain", "otx")]
    assert indicators[0].source_url == "https://otx.alienvault.com/indicator/domain/bad.example"
    assert [(e.service, e.error) for e in errors] == [("ThreatFox", "upstream_unavailable")]
