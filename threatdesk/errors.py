"""Error taxonomy shared by service clients, the CRUD layer and the routes.

Service clients raise these internally and convert them to ``ServiceError``
values at their public boundary. Inside a request, anything that still
escapes is turned into a JSON error body by ``register_error_handlers``.
"""
from flask import jsonify

from .extensions import db


class ThreatDeskError(Exception):
    kind = "error"
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {"error": self.kind, "message": self.message}


class InputValidationError(ThreatDeskError):
    kind = "invalid_input"
    status_code = 400
    default_message = "Invalid input"


class UpstreamUnavailable(ThreatDeskError):
    kind = "upstream_unavailable"
    status_code = 502
    default_message = "Upstream service unavailable. Please try again."


class UpstreamAuthError(ThreatDeskError):
    kind = "service_not_configured"
    status_code = 503
    default_message = "Service not configured"


class RateLimited(ThreatDeskError):
    kind = "rate_limited"
    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, retry_after, headers=None, message=None):
        super().__init__(message or f"Too many requests. Please try again in {retry_after} seconds.")
        self.retry_after = retry_after
        self.headers = headers or {}

    def to_dict(self):
        data = super().to_dict()
        data["retry_after"] = self.retry_after
        return data


class RecordNotFound(ThreatDeskError):
    kind = "not_found"
    status_code = 404
    default_message = "Record not found"


def register_error_handlers(app):
    @app.errorhandler(ThreatDeskError)
    def handle_threatdesk_error(exc):
        # Failed mutation ka aadha-adhura state session me na reh jaye
        db.session.rollback()
        response = jsonify(exc.to_dict())
        response.status_code = exc.status_code
        if isinstance(exc, RateLimited):
            response.headers.update(exc.headers)
        return response


ERROR_STATUS = {
    cls.kind: cls.status_code
    for cls in (InputValidationError, UpstreamUnavailable, UpstreamAuthError, RateLimited, RecordNotFound)
}


def service_error_response(error):
    """JSON response for a ``ServiceError`` value returned by a client."""
    response = jsonify(error.to_dict())
    response.status_code = ERROR_STATUS.get(error.error, 502)
    return response
