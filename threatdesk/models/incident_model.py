from ..extensions import db
from datetime import datetime


class SecurityIncident(db.Model):
    __tablename__ = "security_incidents"

    SEVERITIES = ("low", "medium", "high", "critical")
    STATUSES = ("open", "investigating", "resolved", "closed")
    RESOLVED_STATUSES = ("resolved", "closed")

    REQUIRED = ("title", "severity")
    EDITABLE = (
        "title", "description", "severity", "status", "category", "assignee",
        "reporter", "affected_systems", "iocs_related", "tags", "resolution_notes",
        "lessons_learned", "priority", "estimated_impact", "actual_impact",
    )
    CHOICES = {"severity": SEVERITIES, "status": STATUSES}
    LIST_FIELDS = ("affected_systems", "iocs_related", "tags")
    FILTERS = ("status", "severity", "category", "assignee")
    SEARCH = ("title", "description")
    RANGES = {"priority": (1, 5)}

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    severity = db.Column(db.String(20), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default="open")
    category = db.Column(db.String(100), nullable=True)
    assignee = db.Column(db.String(255), nullable=True)
    reporter = db.Column(db.String(255), nullable=True)
    affected_systems = db.Column(db.JSON, nullable=False, default=list)
    iocs_related = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)
    resolution_notes = db.Column(db.Text, nullable=True)
    lessons_learned = db.Column(db.Text, nullable=True)
    estimated_impact = db.Column(db.Text, nullable=True)
    actual_impact = db.Column(db.Text, nullable=True)
    priority = db.Column(db.Integer, nullable=False, default=3)
    incident_date = db.Column(db.DateTime, default=datetime.utcnow)
    resolved_date = db.Column(db.DateTime, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def apply_status(self, status):
        self.status = status
        # resolved_date sirf pehli baar set hota hai, baad ke status change isse overwrite nahi karte
        if status in self.RESOLVED_STATUSES and self.resolved_date is None:
            self.resolved_date = datetime.utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "status": self.status,
            "category": self.category,
            "assignee": self.assignee,
            "reporter": self.reporter,
            "affected_systems": self.affected_systems or [],
            "iocs_related": self.iocs_related or [],
            "tags": self.tags or [],
            "resolution_notes": self.resolution_notes,
            "lessons_learned": self.lessons_learned,
            "estimated_impact": self.estimated_impact,
            "actual_impact": self.actual_impact,
            "priority": self.priority,
            "incident_date": self.incident_date.isoformat() if self.incident_date else None,
            "resolved_date": self.resolved_date.isoformat() if self.resolved_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
