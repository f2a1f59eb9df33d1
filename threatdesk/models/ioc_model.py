from ..extensions import db
from datetime import datetime


class ThreatIndicator(db.Model):
    __tablename__ = "iocs"

    TYPES = ("ip", "domain", "url", "hash", "email")
    THREAT_LEVELS = ("low", "medium", "high", "critical")

    REQUIRED = ("indicator", "type", "threat_level")
    EDITABLE = (
        "indicator", "type", "threat_level", "description", "source",
        "tags", "confidence_score", "is_active", "first_seen", "last_seen",
    )
    CHOICES = {"type": TYPES, "threat_level": THREAT_LEVELS}
    LIST_FIELDS = ("tags",)
    FILTERS = ("type", "threat_level", "is_active")
    SEARCH = ("indicator", "description", "source")
    DATETIME_FIELDS = ("first_seen", "last_seen")
    RANGES = {"confidence_score": (0, 100)}

    id = db.Column(db.Integer, primary_key=True)
    indicator = db.Column(db.String(2048), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    threat_level = db.Column(db.String(20), nullable=False, default="medium")
    description = db.Column(db.Text, nullable=True)
    source = db.Column(db.String(255), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    confidence_score = db.Column(db.Integer, nullable=False, default=50)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    first_seen = db.Column(db.DateTime, default=datetime.utcnow)
    last_seen = db.Column(db.DateTime, default=datetime.utcnow)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "indicator": self.indicator,
            "type": self.type,
            "threat_level": self.threat_level,
            "description": self.description,
            "source": self.source,
            "tags": self.tags or [],
            "confidence_score": self.confidence_score,
            "is_active": self.is_active,
            "first_seen": self.first_seen.isoformat() if self.first_seen else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
