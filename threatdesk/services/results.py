"""Normalized result shapes returned by the upstream service clients.

Every shape carries a ``kind`` discriminant so callers can branch on it
instead of sniffing for keys.
"""
from dataclasses import asdict, dataclass, field


@dataclass
class ScanVerdictResult:
    target: str
    target_type: str
    verdict: str
    summary: str
    detection_ratio: str = "0/0"
    stats: dict = field(default_factory=dict)
    vendors: list = field(default_factory=list)
    report_url: str = ""
    source: str = "virustotal"
    kind: str = "scan_verdict"

    @property
    def ok(self):
        return True

    def to_dict(self):
        return asdict(self)


@dataclass
class ThreatIndicatorResult:
    indicator: str
    type: str
    source: str
    threat_type: str = "Unknown"
    malware_family: str | None = None
    confidence: int = 0
    first_seen: str | None = None
    last_seen: str | None = None
    description: str = ""
    tags: list = field(default_factory=list)
    source_url: str = ""
    kind: str = "threat_indicator"

    @property
    def ok(self):
        return True

    def to_dict(self):
        return asdict(self)


@dataclass
class NewsItem:
    title: str
    description: str
    link: str
    pub_date: str
    source: str
    category: str
    kind: str = "news_item"

    def to_dict(self):
        return asdict(self)


@dataclass
class ChatReply:
    response: str
    model: str
    usage: dict | None = None
    kind: str = "chat_reply"

    @property
    def ok(self):
        return True

    def to_dict(self):
        return asdict(self)


@dataclass
class ServiceError:
    error: str
    message: str
    service: str = ""
    retry_after: int | None = None
    kind: str = "error"

    @property
    def ok(self):
        return False

    @classmethod
    def from_exception(cls, exc, service=""):
        return cls(error=exc.kind, message=exc.message, service=service)

    def to_dict(self):
        return asdict(self)

