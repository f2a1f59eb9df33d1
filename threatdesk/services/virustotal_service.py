import base64
import logging
from urllib.parse import quote

from ..errors import InputValidationError, ThreatDeskError
from .http_client import fetch_json
from .results import ScanVerdictResult, ServiceError
from .target_service import classify_target

logger = logging.getLogger(__name__)

SERVICE = "VirusTotal"
API_BASE = "https://www.virustotal.com/api/v3"
GUI_BASE = "https://www.virustotal.com/gui"

# v2 style response codes; v3 responses are mapped onto these
RESPONSE_SCANNING = -2
RESPONSE_NOT_FOUND = 0
RESPONSE_FOUND = 1

_STAT_KEYS = ("malicious", "suspicious", "harmless", "undetected", "timeout", "failure")
_CATEGORY_ORDER = {"malicious": 0, "suspicious": 1, "harmless": 2, "clean": 2, "undetected": 3}


def url_id(url):
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def verdict_for(response_code, positives, total):
    if response_code == RESPONSE_SCANNING:
        return "scanning"
    if response_code == RESPONSE_NOT_FOUND:
        return "unknown"
    if total > 0 and positives / total > 0.1:
        return "malicious"
    if positives > 0:
        return "suspicious"
    if total > 0:
        return "clean"
    return "unknown"


def ascii_domain(domain):
    """IDNA form of a domain, safe to drop into a URL path segment."""
    try:
        host = domain.encode("idna").decode("ascii")
    except UnicodeError:
        raise InputValidationError(f"Invalid domain name: {domain!r}")
    return quote(host, safe="")


def gui_url(target, target_type):
    if target_type == "url":
        return f"{GUI_BASE}/url/{url_id(target)}"
    if target_type == "hash":
        return f"{GUI_BASE}/file/{target}"
    if target_type == "ip":
        return f"{GUI_BASE}/ip-address/{target}"
    if target_type == "domain":
        return f"{GUI_BASE}/domain/{ascii_domain(target)}"
    return f"{GUI_BASE}/search/{quote(target, safe='')}"


def _report_path(target, target_type):
    if target_type == "url":
        return f"/urls/{url_id(target)}"
    if target_type == "hash":
        return f"/files/{target}"
    if target_type == "ip":
        return f"/ip_addresses/{target}"
    return f"/domains/{ascii_domain(target)}"


def _map_category(category):
    category = (category or "").lower()
    if category == "error":
        return "failure"
    if category in ("malicious", "suspicious", "undetected", "harmless", "clean", "timeout", "failure"):
        return category
    return "undetected"


def _vendors(results):
    vendors = []
    for name, entry in (results or {}).items():
        entry = entry or {}
        result = entry.get("result")
        vendors.append({
            "name": name,
            "result": "Clean" if result in (None, "null") else result,
            "category": _map_category(entry.get("category")),
        })

    malicious = [v for v in vendors if v["category"] == "malicious"]
    suspicious = [v for v in vendors if v["category"] == "suspicious"]
    clean = [v for v in vendors if v["category"] in ("clean", "harmless")]
    shown = malicious + suspicious + clean[:5]
    if not shown:
        shown = [v for v in vendors if v["category"] == "undetected"][:10]
    shown.sort(key=lambda v: _CATEGORY_ORDER.get(v["category"], 99))
    return shown


def _summary(verdict, stats):
    if verdict == "scanning":
        return "Analysis in progress - check back in a few minutes"
    if verdict == "unknown":
        return "Not found in VirusTotal database" if not stats.get("total") else "Unable to determine status"
    if verdict == "malicious":
        return f"Detected as malicious by {stats['malicious']} engine(s)"
    if verdict == "suspicious":
        flagged = stats["malicious"] + stats["suspicious"]
        return f"Flagged by {flagged} of {stats['total']} engine(s)"
    return f"No threats detected by {stats['total']} engine(s)"


def format_report(target, target_type, status, payload):
    """Turn a v3 report lookup into a ``ScanVerdictResult``."""
    attributes = ((payload or {}).get("data") or {}).get("attributes")
    if status == 404:
        response_code = RESPONSE_NOT_FOUND
    elif not attributes:
        response_code = RESPONSE_SCANNING
    else:
        response_code = RESPONSE_FOUND

    raw_stats = (attributes or {}).get("last_analysis_stats") or {}
    stats = {key: int(raw_stats.get(key) or 0) for key in _STAT_KEYS}
    stats["total"] = sum(stats.values())
    positives = stats["malicious"] + stats["suspicious"]

    verdict = verdict_for(response_code, positives, stats["total"])
    if verdict == "scanning":
        ratio = "Scanning..."
    else:
        ratio = f"{positives}/{stats['total']}" if stats["total"] else "0/0"

    return ScanVerdictResult(
        target=target,
        target_type=target_type,
        verdict=verdict,
        summary=_summary(verdict, stats),
        detection_ratio=ratio,
        stats=stats,
        vendors=_vendors((attributes or {}).get("last_analysis_results")),
        report_url=gui_url(target, target_type),
        source="virustotal",
    )


def scan_target(value, api_key, timeout=15):
    """Look up a URL, IP, domain or hash. Never raises."""
    target = (value or "").strip()
    try:
        target_type = classify_target(target)
        if not api_key:
            return ServiceError(
                error="service_not_configured",
                message="VirusTotal API key not configured",
                service=SERVICE,
            )
        status, payload = fetch_json(
            API_BASE + _report_path(target, target_type),
            headers={"x-apikey": api_key},
            timeout=timeout,
            service=SERVICE,
            allow_status=(404,),
        )
        if payload and payload.get("error") and status != 404:
            message = (payload["error"] or {}).get("message") or "Unknown error"
            return ServiceError(error="upstream_unavailable", message=f"API Error: {message}", service=SERVICE)
        return format_report(target, target_type, status, payload)
    except InputValidationError as exc:
        return ServiceError.from_exception(exc, SERVICE)
    except ThreatDeskError as exc:
        logger.warning("VirusTotal lookup failed for %s: %s", target, exc.message)
        return ServiceError.from_exception(exc, SERVICE)
