import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from ..errors import ThreatDeskError
from .http_client import fetch_text
from .results import NewsItem

logger = logging.getLogger(__name__)

ITEMS_PER_FEED = 5
MAX_ITEMS = 20
DESCRIPTION_LIMIT = 200

# Order matters: pehla match jeetta hai (ransomware > vulnerability)
CATEGORY_RULES = (
    (("ransomware",), "Ransomware"),
    (("vulnerability", "cve"), "Vulnerability"),
    (("zero-day", "zero day"), "Zero-Day"),
    (("phishing",), "Phishing"),
    (("supply chain",), "Supply Chain"),
    (("infrastructure",), "Critical Infrastructure"),
)
DEFAULT_CATEGORY = "Security News"

_ITEM_RE = re.compile(r"<item[^>]*>[\s\S]*?</item>", re.IGNORECASE)
_CDATA_RE = re.compile(r"^<!\[CDATA\[([\s\S]*?)\]\]>$")
_TAG_RE = re.compile(r"<[^>]*>")


def _extract(block, tag):
    match = re.search(rf"<{tag}[^>]*>([\s\S]*?)</{tag}>", block, re.IGNORECASE)
    if not match:
        return ""
    value = match.group(1).strip()
    cdata = _CDATA_RE.match(value)
    if cdata:
        value = cdata.group(1).strip()
    return value


def clean_text(text):
    # Entities pehle decode, taaki &lt;p&gt; jaise escaped tags bhi strip ho jaye
    text = html.unescape(text or "")
    text = _TAG_RE.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def categorize(title, description):
    text = f"{title} {description}".lower()
    for keywords, category in CATEGORY_RULES:
        if any(k in text for k in keywords):
            return category
    return DEFAULT_CATEGORY


def parse_feed(xml_text, source):
    """Pull at most ``ITEMS_PER_FEED`` news items out of an RSS document.

    This is tolerant regex matching over ``<item>`` blocks, not XML parsing,
    so truncated or slightly broken feeds still yield what they can.
    """
    items = []
    for block in _ITEM_RE.findall(xml_text or "")[:ITEMS_PER_FEED]:
        title = clean_text(_extract(block, "title"))
        description = clean_text(_extract(block, "description"))
        link = clean_text(_extract(block, "link"))
        pub_date = clean_text(_extract(block, "pubDate"))
        if not (title and description and link):
            continue
        items.append(NewsItem(
            title=title,
            description=description[:DESCRIPTION_LIMIT] + "...",
            link=link,
            pub_date=pub_date or datetime.now(timezone.utc).isoformat(),
            source=source,
            category=categorize(title, description),
        ))
    return items


def parse_date(value, now=None):
    now = now or datetime.now(timezone.utc)
    value = (value or "").strip()
    if not value:
        return now
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            # Invalid date "abhi" ki tarah sort hota hai
            return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def merge_news(batches, limit=MAX_ITEMS):
    now = datetime.now(timezone.utc)
    items = [item for batch in batches for item in batch]
    items.sort(key=lambda item: parse_date(item.pub_date, now), reverse=True)
    return items[:limit]


def get_security_news(feeds, timeout=15, limit=MAX_ITEMS):
    batches = []
    for feed in feeds:
        source = feed.get("source") or feed["url"]
        try:
            xml_text = fetch_text(feed["url"], timeout=timeout, service=source)
        except ThreatDeskError as exc:
            logger.warning("Skipping feed %s: %s", source, exc.message)
            continue
        batches.append(parse_feed(xml_text, source))
    return merge_news(batches, limit=limit)
