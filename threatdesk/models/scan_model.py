from ..extensions import db
from datetime import datetime


class ScanHistory(db.Model):
    __tablename__ = "scan_history"

    SCAN_TYPES = ("virustotal", "urlscan", "manual")
    TARGET_TYPES = ("url", "ip", "domain", "hash", "file")
    VERDICTS = ("clean", "malicious", "suspicious", "unknown", "undetected")
    STATUSES = ("completed", "failed")

    REQUIRED = ("scan_type", "target", "target_type")
    EDITABLE = (
        "scan_type", "target", "target_type", "status", "verdict", "threat_score",
        "detection_stats", "result", "error_message", "scan_duration", "metadata",
    )
    CHOICES = {
        "scan_type": SCAN_TYPES,
        "target_type": TARGET_TYPES,
        "verdict": VERDICTS,
        "status": STATUSES,
    }
    LIST_FIELDS = ()
    FILTERS = ("scan_type", "target_type", "status", "verdict")
    SEARCH = ("target",)
    RANGES = {"threat_score": (0, 100)}
    # "metadata" SQLAlchemy me reserved attribute hai
    ATTRIBUTES = {"metadata": "scan_metadata"}

    id = db.Column(db.Integer, primary_key=True)
    scan_type = db.Column(db.String(20), nullable=False)
    target = db.Column(db.String(2048), nullable=False)
    target_type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")
    verdict = db.Column(db.String(20), nullable=False, default="unknown")
    threat_score = db.Column(db.Integer, nullable=True)
    detection_stats = db.Column(db.JSON, nullable=False, default=dict)
    result = db.Column(db.JSON, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    scan_duration = db.Column(db.Float, nullable=True)
    scan_metadata = db.Column("metadata", db.JSON, nullable=False, default=dict)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "scan_type": self.scan_type,
            "target": self.target,
            "target_type": self.target_type,
            "status": self.status,
            "verdict": self.verdict,
            "threat_score": self.threat_score,
            "detection_stats": self.detection_stats or {},
            "result": self.result,
            "error_message": self.error_message,
            "scan_duration": self.scan_duration,
            "metadata": self.scan_metadata or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
