import logging
from dataclasses import asdict, dataclass, field

from ..errors import InputValidationError, ThreatDeskError
from .http_client import fetch_json
from .results import ServiceError
from .target_service import normalize_url

logger = logging.getLogger(__name__)

SERVICE = "URLScan.io"
API_BASE = "https://urlscan.io/api/v1"


@dataclass
class ScanStatus:
    status: str
    progress: int = 0
    message: str = ""
    uuid: str = ""
    result: dict = field(default_factory=dict)

    def to_dict(self):
        return asdict(self)


def report_url(uuid):
    return f"https://urlscan.io/result/{uuid}/"


def determine_verdict(data):
    overall = (data.get("verdicts") or {}).get("overall") or {}
    if (overall.get("malicious") or 0) > 0:
        return "malicious"
    if (overall.get("suspicious") or 0) > 0:
        return "suspicious"
    return "safe"


def risk_score(data):
    overall = (data.get("verdicts") or {}).get("overall") or {}
    malicious = overall.get("malicious") or 0
    suspicious = overall.get("suspicious") or 0
    return min(malicious * 50 + suspicious * 25, 100)


def format_result(uuid, data):
    task = data.get("task") or {}
    lists = data.get("lists") or {}
    stats = data.get("stats") or {}
    requests = (data.get("data") or {}).get("requests") or []

    http_requests = []
    redirects = []
    for entry in requests:
        req = entry.get("request") or {}
        resp = entry.get("response") or {}
        http_requests.append({
            "url": req.get("url") or "",
            "method": req.get("method") or "GET",
            "status": resp.get("status") or 0,
            "type": req.get("type") or "unknown",
            "size": resp.get("dataLength") or 0,
        })
        code = resp.get("status") or 0
        if 300 <= code < 400:
            redirects.append({"from": req.get("url") or "", "to": resp.get("location") or "", "status": code})

    behaviors = [f"Connected to IP: {ip}" for ip in lists.get("ips") or []]
    behaviors += [f"Accessed domain: {domain}" for domain in lists.get("domains") or []]
    other_urls = [u for u in lists.get("urls") or [] if u != task.get("url")]
    behaviors += [f"Made request to: {u}" for u in other_urls[:5]]

    countries = []
    for country in lists.get("countries") or []:
        if country not in countries:
            countries.append(country)

    return {
        "url": task.get("url"),
        "verdict": determine_verdict(data),
        "score": risk_score(data),
        "screenshot_url": task.get("screenshotURL") or data.get("screenshotURL")
        or f"https://urlscan.io/screenshots/{uuid}.png",
        "report_url": report_url(uuid),
        "analysis": {
            "requests": stats.get("uniqRequests") or len(http_requests),
            "domains": stats.get("uniqDomains") or 0,
            "ips": stats.get("uniqIPs") or 0,
            "countries": countries[:3],
        },
        "http_requests": http_requests[:10],
        "redirects": redirects[:5],
        "behaviors": behaviors[:8],
    }


def submit_scan(url, api_key, timeout=15):
    """Submit a URL for scanning. Returns a submission dict or ``ServiceError``."""
    target = normalize_url(url)
    if not target:
        return ServiceError.from_exception(InputValidationError("URL is required"), SERVICE)
    if not api_key:
        return ServiceError(error="service_not_configured", message="URLScan API key not configured", service=SERVICE)

    try:
        _, payload = fetch_json(
            f"{API_BASE}/scan/",
            method="POST",
            headers={"API-Key": api_key},
            json_body={"url": target, "visibility": "public"},
            timeout=timeout,
            service=SERVICE,
        )
    except ThreatDeskError as exc:
        logger.warning("URLScan submit failed for %s: %s", target, exc.message)
        return ServiceError.from_exception(exc, SERVICE)

    uuid = (payload or {}).get("uuid")
    if not uuid:
        return ServiceError(error="upstream_unavailable", message="Failed to submit URL for scanning", service=SERVICE)
    return {
        "status": "submitted",
        "progress": 10,
        "message": "URL submitted for scanning...",
        "uuid": uuid,
        "url": target,
        "report_url": report_url(uuid),
    }


def get_scan_status(uuid, timeout=15):
    """Ask for the result of a submitted scan. Never raises."""
    try:
        status, data = fetch_json(
            f"{API_BASE}/result/{uuid}/",
            timeout=timeout,
            service=SERVICE,
            allow_status=(404,),
        )
    except ThreatDeskError as exc:
        logger.warning("URLScan status check failed for %s: %s", uuid, exc.message)
        return ScanStatus(status="error", message="Failed to get scan status", uuid=uuid)

    if status == 404:
        return ScanStatus(status="processing", progress=50, message="Scan in progress...", uuid=uuid)

    data = data or {}
    if not (data.get("task") or {}).get("url"):
        return ScanStatus(status="processing", progress=75, message="Generating report and screenshot...", uuid=uuid)

    return ScanStatus(status="complete", progress=100, message="Scan complete", uuid=uuid,
                      result=format_result(uuid, data))


class UrlScanClient:
    """Binds credentials so the poll loop only deals with submit/status."""

    def __init__(self, api_key, timeout=15):
        self.api_key = api_key
        self.timeout = timeout

    def submit(self, url):
        return submit_scan(url, self.api_key, self.timeout)

    def status(self, uuid):
        return get_scan_status(uuid, self.timeout)
