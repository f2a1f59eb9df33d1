import logging
from datetime import datetime, timezone
from urllib.parse import quote

from ..errors import ThreatDeskError
from .http_client import fetch_json
from .results import ServiceError, ThreatIndicatorResult

logger = logging.getLogger(__name__)

THREATFOX_URL = "https://threatfox-api.abuse.ch/api/v1/"
OTX_URL = "https://otx.alienvault.com/api/v1/pulses/subscribed"
FEED_LIMIT = 10

_THREATFOX_TYPES = {
    "url": "url",
    "domain": "domain",
    "ip": "ip",
    "ip:port": "ip",
    "md5_hash": "hash",
    "sha1_hash": "hash",
    "sha256_hash": "hash",
}

_OTX_TYPES = {
    "IPv4": "ip",
    "IPv6": "ip",
    "domain": "domain",
    "hostname": "domain",
    "URL": "url",
    "URI": "url",
    "FileHash-MD5": "hash",
    "FileHash-SHA1": "hash",
    "FileHash-SHA256": "hash",
    "email": "email",
}


def _now():
    return datetime.now(timezone.utc).isoformat()


def map_threatfox_type(ioc_type):
    return _THREATFOX_TYPES.get(ioc_type or "", "unknown")


def otx_indicator_url(indicator, ioc_type):
    if ioc_type == "domain":
        return f"https://otx.alienvault.com/indicator/domain/{indicator}"
    if ioc_type == "url":
        return f"https://otx.alienvault.com/indicator/url/{quote(indicator, safe='')}"
    if ioc_type == "hash":
        return f"https://otx.alienvault.com/indicator/file/{indicator}"
    return f"https://otx.alienvault.com/indicator/ip/{indicator}"


def fetch_threatfox(api_key="", timeout=15, days=1):
    headers = {"Auth-Key": api_key} if api_key else {}
    _, payload = fetch_json(
        THREATFOX_URL,
        method="POST",
        headers=headers,
        json_body={"query": "get_iocs", "days": days},
        timeout=timeout,
        service="ThreatFox",
    )
    data = (payload or {}).get("data")
    if not isinstance(data, list):
        # query_status "no_result" pe data ek string hota hai
        return []

    indicators = []
    for item in data[:FEED_LIMIT]:
        ioc_id = item.get("id")
        threat_type = item.get("threat_type") or "Unknown"
        indicators.append(ThreatIndicatorResult(
            indicator=item.get("ioc") or item.get("indicator") or "",
            type=map_threatfox_type(item.get("ioc_type")),
            source="threatfox",
            threat_type=threat_type,
            malware_family=item.get("malware_printable") or item.get("malware"),
            confidence=int(item.get("confidence_level") or 90),
            first_seen=item.get("first_seen") or _now(),
            last_seen=item.get("last_seen") or _now(),
            description=item.get("comment") or f"ThreatFox IOC: {threat_type}",
            tags=item.get("tags") or [],
            source_url=f"https://threatfox.abuse.ch/ioc/{ioc_id}/" if ioc_id else "https://threatfox.abuse.ch/browse/",
        ))
    return indicators


def fetch_otx(api_key, timeout=15):
    _, payload = fetch_json(
        f"{OTX_URL}?limit=5",
        headers={"X-OTX-API-KEY": api_key},
        timeout=timeout,
        service="AlienVault OTX",
    )

    indicators = []
    for pulse in (payload or {}).get("results") or []:
        for entry in pulse.get("indicators") or []:
            ioc_type = _OTX_TYPES.get(entry.get("type"), "unknown")
            indicator = entry.get("indicator") or ""
            indicators.append(ThreatIndicatorResult(
                indicator=indicator,
                type=ioc_type,
                source="otx",
                threat_type=pulse.get("name") or "OTX Pulse",
                malware_family=None,
                confidence=int(entry.get("confidence") or 75),
                first_seen=entry.get("created") or pulse.get("created") or _now(),
                last_seen=pulse.get("modified") or _now(),
                description=entry.get("description") or pulse.get("description") or "",
                tags=pulse.get("tags") or [],
                source_url=otx_indicator_url(indicator, ioc_type),
            ))
            if len(indicators) >= FEED_LIMIT:
                return indicators
    return indicators


def fetch_threat_feed(threatfox_key="", otx_key="", timeout=15):
    """Collect recent indicators from every configured feed.

    Returns ``(indicators, errors)``; a failing source adds a
    ``ServiceError`` and the others still contribute.
    """
    sources = [("ThreatFox", lambda: fetch_threatfox(threatfox_key, timeout))]
    if otx_key:
        sources.append(("AlienVault OTX", lambda: fetch_otx(otx_key, timeout)))
    else:
        logger.info("OTX_API_KEY not set, skipping AlienVault OTX")

    indicators = []
    errors = []
    for name, fetch in sources:
        try:
            indicators.extend(fetch())
        except ThreatDeskError as exc:
            logger.warning("%s feed failed: %s", name, exc.message)
            errors.append(ServiceError.from_exception(exc, name))
    return indicators, errors
