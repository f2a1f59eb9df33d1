import http.client
import json
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from ..errors import UpstreamAuthError, UpstreamUnavailable

logger = logging.getLogger(__name__)

USER_AGENT = "ThreatDesk/1.0"
DEFAULT_TIMEOUT = 15


def fetch(url, method="GET", headers=None, json_body=None, form=None,
          timeout=DEFAULT_TIMEOUT, service="upstream", allow_status=()):
    """Issue exactly one HTTP request and return ``(status, body_bytes)``.

    Statuses listed in ``allow_status`` are handed back to the caller instead
    of being raised, for upstreams where e.g. 404 is a meaningful answer.
    """
    req_headers = {"User-Agent": USER_AGENT}
    req_headers.update(headers or {})

    data = None
    if json_body is not None:
        data = json.dumps(json_body).encode("utf-8")
        req_headers["Content-Type"] = "application/json"
    elif form is not None:
        data = urlencode(form).encode("utf-8")
        req_headers["Content-Type"] = "application/x-www-form-urlencoded"

    try:
        req = Request(url, data=data, headers=req_headers, method=method)
        with urlopen(req, timeout=timeout) as resp:
            return resp.status, resp.read()
    except HTTPError as exc:
        if exc.code in allow_status:
            return exc.code, exc.read() or b""
        logger.warning("%s returned HTTP %s", service, exc.code)
        if exc.code in (401, 403):
            raise UpstreamAuthError(f"{service} rejected the configured API key") from exc
        if exc.code == 429:
            raise UpstreamUnavailable(f"{service} rate limit exceeded. Please try again later.") from exc
        raise UpstreamUnavailable(f"{service} returned HTTP {exc.code}") from exc
    except (URLError, TimeoutError, OSError) as exc:
        logger.warning("%s unreachable: %s", service, exc)
        raise UpstreamUnavailable(f"Network error connecting to {service}. Please try again.") from exc
    except (http.client.HTTPException, ValueError) as exc:
        # Truncated body, bad status line, ya request hi ban nahi paya (non-ASCII URL)
        logger.warning("%s request failed: %s", service, exc)
        raise UpstreamUnavailable(f"Invalid response from {service}") from exc


def fetch_json(url, **kwargs):
    status, body = fetch(url, **kwargs)
    if not body:
        return status, None
    try:
        return status, json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        service = kwargs.get("service", "upstream")
        logger.warning("%s returned a non-JSON body", service)
        raise UpstreamUnavailable(f"Invalid response from {service}") from exc


def fetch_text(url, **kwargs):
    _, body = fetch(url, **kwargs)
    return body.decode("utf-8", errors="replace")
