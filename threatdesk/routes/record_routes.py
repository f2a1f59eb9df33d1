from flask import Blueprint, current_app, jsonify, request, session

from ..errors import InputValidationError, RateLimited
from ..models.incident_model import SecurityIncident
from ..models.ioc_model import ThreatIndicator
from ..models.scan_model import ScanHistory
from ..models.watchlist_model import Watchlist
from ..services.crud_service import RecordService
from ..services.rate_limiter import client_identifier, rate_limit_headers, retry_after
from .auth_routes import login_required, request_data

ioc_service = RecordService(ThreatIndicator, "IOC")
history_service = RecordService(ScanHistory, "Scan record")
incident_service = RecordService(SecurityIncident, "Incident")
watchlist_service = RecordService(Watchlist, "Watchlist")


def enforce_rate_limit(endpoint):
    limiter = current_app.extensions["threatdesk.rate_limiter"]
    identifier = f"{endpoint}:{client_identifier(request, session.get('user_id'))}"
    result = limiter.check(identifier)
    now = limiter.clock()
    headers = rate_limit_headers(result, now)
    if not result.allowed:
        current_app.logger.info("Rate limit hit on %s", endpoint)
        raise RateLimited(retry_after(result, now), headers=headers)
    return headers


def record_blueprint(name, service, collection, rate_limited=False, editable=True):
    """JSON CRUD endpoints for one owner-scoped record type."""
    bp = Blueprint(name, __name__, url_prefix=f"/{name}")

    @bp.route("", methods=["GET"])
    @login_required
    def list_records():
        records = service.list(session["user_id"], filters=request.args, search=request.args.get("q"))
        return jsonify({collection: [r.to_dict() for r in records], "count": len(records)})

    @bp.route("", methods=["POST"])
    @login_required
    def create_record():
        headers = enforce_rate_limit(name) if rate_limited else {}
        record = service.create(session["user_id"], request_data())
        current_app.logger.info("Created %s %s", service.label, record.id)
        return jsonify({"data": record.to_dict()}), 201, headers

    @bp.route("/<int:record_id>", methods=["GET"])
    @login_required
    def get_record(record_id):
        return jsonify({"data": service.get(session["user_id"], record_id).to_dict()})

    if editable:
        @bp.route("/<int:record_id>", methods=["PATCH", "PUT"])
        @login_required
        def update_record(record_id):
            record = service.update(session["user_id"], record_id, request_data())
            return jsonify({"data": record.to_dict()})

    @bp.route("/<int:record_id>", methods=["DELETE"])
    @login_required
    def delete_record(record_id):
        service.delete(session["user_id"], record_id)
        current_app.logger.info("Deleted %s %s", service.label, record_id)
        return jsonify({"deleted": record_id})

    return bp


iocs = record_blueprint("iocs", ioc_service, "iocs", rate_limited=True)
# History entries immutable hain: sirf create/read/delete
history = record_blueprint("history", history_service, "scans", editable=False)
incidents = record_blueprint("incidents", incident_service, "incidents")
watchlists = record_blueprint("watchlists", watchlist_service, "watchlists", rate_limited=True)


@incidents.route("/<int:record_id>/status", methods=["POST"])
@login_required
def update_incident_status(record_id):
    status = (request_data().get("status") or "").strip()
    if not status:
        raise InputValidationError("status is required")
    record = incident_service.update_status(session["user_id"], record_id, status)
    return jsonify({"data": record.to_dict()})


@watchlists.route("/<int:record_id>/toggle", methods=["POST"])
@login_required
def toggle_watchlist(record_id):
    record = watchlist_service.get(session["user_id"], record_id)
    record = watchlist_service.update(session["user_id"], record_id, {"is_active": not record.is_active})
    return jsonify({"data": record.to_dict()})
