import re
from datetime import datetime, timezone

from sqlalchemy import or_

from ..errors import InputValidationError, RecordNotFound
from ..extensions import db

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def parse_text_list(value):
    """Split comma/newline separated text into a clean list of entries."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = re.split(r"[,\n]", value)
    elif isinstance(value, (list, tuple)):
        parts = value
    else:
        raise InputValidationError("Expected text or a list of strings")
    return [str(p).strip() for p in parts if str(p).strip()]


def parse_bool(value, name="value"):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise InputValidationError(f"{name} must be true or false")


def parse_datetime(value, name="value"):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise InputValidationError(f"{name} must be an ISO 8601 timestamp")
    # Columns naive UTC store karte hain
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class RecordService:
    """Owner-scoped create/list/update/delete for one model.

    The model describes itself through class attributes: ``EDITABLE``,
    ``REQUIRED``, ``CHOICES``, ``LIST_FIELDS``, ``FILTERS``, ``SEARCH`` and
    optionally ``RANGES``, ``DATETIME_FIELDS``, ``ATTRIBUTES`` and
    ``coerce_<field>`` hooks.
    """

    def __init__(self, model, label):
        self.model = model
        self.label = label

    def _attr(self, name):
        return getattr(self.model, "ATTRIBUTES", {}).get(name, name)

    def _coerce(self, name, value):
        model = self.model
        hook = getattr(model, f"coerce_{name}", None)
        if hook is not None:
            return hook(value)
        if name in model.LIST_FIELDS:
            return parse_text_list(value)
        if name in model.CHOICES:
            choice = str(value or "").strip().lower()
            if choice not in model.CHOICES[name]:
                raise InputValidationError(f"{name} must be one of: {', '.join(model.CHOICES[name])}")
            return choice
        if name in getattr(model, "DATETIME_FIELDS", ()):
            return parse_datetime(value, name)
        if name.startswith("is_"):
            return parse_bool(value, name)
        if name in getattr(model, "RANGES", {}):
            if value in (None, ""):
                return None
            low, high = model.RANGES[name]
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise InputValidationError(f"{name} must be a whole number")
            if not low <= number <= high:
                raise InputValidationError(f"{name} must be between {low} and {high}")
            return number
        if isinstance(value, str):
            return value.strip()
        return value

    def _clean(self, fields, partial):
        fields = fields or {}
        data = {}
        for name in self.model.EDITABLE:
            if name in fields:
                data[name] = self._coerce(name, fields[name])

        for name in self.model.REQUIRED:
            if name in data:
                if data[name] in (None, "", []):
                    raise InputValidationError(f"{name} is required")
            elif not partial:
                raise InputValidationError(f"{name} is required")
        # nullable=False columns pe None ka matlab "default rehne do"
        return {k: v for k, v in data.items() if v is not None or self._nullable(k)}

    def _nullable(self, name):
        column = self.model.__table__.columns.get(name)
        return column is None or column.nullable

    def _apply(self, record, data):
        status = data.pop("status", None)
        for name, value in data.items():
            setattr(record, self._attr(name), value)
        if status is not None:
            if hasattr(record, "apply_status"):
                record.apply_status(status)
            else:
                record.status = status

    def create(self, user_id, fields):
        data = self._clean(fields, partial=False)
        record = self.model(user_id=user_id)
        self._apply(record, data)
        db.session.add(record)
        db.session.commit()
        return record

    def list(self, user_id, filters=None, search=None):
        model = self.model
        query = model.query.filter_by(user_id=user_id)
        for name in model.FILTERS:
            value = (filters or {}).get(name)
            if value in (None, "", "all"):
                continue
            query = query.filter(getattr(model, self._attr(name)) == self._coerce(name, value))

        term = (search or "").strip()
        if term:
            query = query.filter(or_(*[getattr(model, f).ilike(f"%{term}%") for f in model.SEARCH]))
        return query.order_by(model.created_at.desc(), model.id.desc()).all()

    def get(self, user_id, record_id):
        record = self.model.query.filter_by(id=record_id, user_id=user_id).first()
        if record is None:
            raise RecordNotFound(f"{self.label} {record_id} not found")
        return record

    def update(self, user_id, record_id, fields):
        record = self.get(user_id, record_id)
        self._apply(record, self._clean(fields, partial=True))
        db.session.commit()
        return record

    def update_status(self, user_id, record_id, status):
        return self.update(user_id, record_id, {"status": status})

    def delete(self, user_id, record_id):
        record = self.get(user_id, record_id)
        db.session.delete(record)
        db.session.commit()
        return record
