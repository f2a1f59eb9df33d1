from ..errors import InputValidationError
from ..extensions import db
from ..services.crud_service import parse_bool
from datetime import datetime


def default_notifications():
    return {"email": False, "slack": False, "webhook": False}


class Watchlist(db.Model):
    __tablename__ = "watchlists"

    TYPES = ("ip", "domain", "url", "hash", "keyword")
    THRESHOLDS = ("low", "medium", "high", "critical")
    CHANNELS = ("email", "slack", "webhook")

    REQUIRED = ("name", "type")
    EDITABLE = (
        "name", "description", "type", "indicators", "alert_threshold",
        "notification_settings", "is_active",
    )
    CHOICES = {"type": TYPES, "alert_threshold": THRESHOLDS}
    LIST_FIELDS = ("indicators",)
    FILTERS = ("type", "is_active", "alert_threshold")
    SEARCH = ("name", "description")

    @classmethod
    def coerce_notification_settings(cls, value):
        settings = default_notifications()
        if value is None:
            return settings
        if not isinstance(value, dict):
            raise InputValidationError("notification_settings must be an object")
        for channel in cls.CHANNELS:
            if channel in value:
                settings[channel] = parse_bool(value[channel], channel)
        return settings

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(20), nullable=False)
    indicators = db.Column(db.JSON, nullable=False, default=list)
    alert_threshold = db.Column(db.String(20), nullable=False, default="medium")
    notification_settings = db.Column(db.JSON, nullable=False, default=default_notifications)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    match_count = db.Column(db.Integer, nullable=False, default=0)
    last_match = db.Column(db.DateTime, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "indicators": self.indicators or [],
            "alert_threshold": self.alert_threshold,
            "notification_settings": self.notification_settings or default_notifications(),
            "is_active": self.is_active,
            "match_count": self.match_count,
            "last_match": self.last_match.isoformat() if self.last_match else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
