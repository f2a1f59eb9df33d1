import re

from ..errors import InputValidationError

_HASH_RE = re.compile(r"^(?:[a-fA-F0-9]{32}|[a-fA-F0-9]{40}|[a-fA-F0-9]{64})$")
_IPV4_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

TARGET_TYPES = ("url", "ip", "domain", "hash", "file")


def normalize_url(url):
    cleaned = (url or "").strip()
    if not cleaned:
        return ""
    if not _URL_RE.match(cleaned):
        cleaned = f"https://{cleaned}"
    return cleaned


def classify_target(value):
    """Return ``url``, ``hash``, ``ip`` or ``domain`` for a scan target.

    Hashes are MD5/SHA1/SHA256 hex digests. Anything that is none of the
    above but still has a dot and no whitespace is treated as a domain.
    """
    target = (value or "").strip()
    if not target:
        raise InputValidationError("A URL, IP address, domain or file hash is required.")
    if _URL_RE.match(target):
        return "url"
    if _HASH_RE.match(target):
        return "hash"
    if _IPV4_RE.match(target):
        return "ip"
    if "." in target and not re.search(r"\s", target):
        return "domain"
    raise InputValidationError(f"Unrecognised target: {target!r}")
