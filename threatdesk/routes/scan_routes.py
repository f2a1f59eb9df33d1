import time

from flask import Blueprint, current_app, jsonify, session

from ..extensions import db
from ..models.scan_model import ScanHistory
from ..errors import service_error_response
from ..services.results import ServiceError
from ..services.scan_poller import ScanPoller
from ..services.target_service import normalize_url
from ..services.urlscan_service import UrlScanClient
from ..services.virustotal_service import scan_target
from .auth_routes import login_required, request_data

scan = Blueprint("scan", __name__, url_prefix="/scan")

# urlscan ka "safe" history me "clean" ban ke jata hai
_URLSCAN_VERDICTS = {"safe": "clean", "suspicious": "suspicious", "malicious": "malicious"}


def record_virustotal(user_id, result, duration):
    entry = ScanHistory(
        user_id=user_id,
        scan_type="virustotal",
        target=result.target,
        target_type=result.target_type,
        status="completed",
        verdict=result.verdict,
        threat_score=None,
        detection_stats=result.stats,
        result={"summary": result.summary, "detection_ratio": result.detection_ratio,
                "vendors": result.vendors},
        scan_duration=round(duration, 3),
        scan_metadata={"report_url": result.report_url},
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def record_urlscan(app, user_id, started, job):
    """Persist a finished URLScan job; runs on the poller thread."""
    with app.app_context():
        result = job.result or {}
        entry = ScanHistory(
            user_id=user_id,
            scan_type="urlscan",
            target=job.target,
            target_type="url",
            status="completed" if job.status == "complete" else "failed",
            verdict=_URLSCAN_VERDICTS.get(result.get("verdict"), "unknown"),
            threat_score=result.get("score"),
            detection_stats=result.get("analysis") or {},
            result=result or None,
            error_message=job.error,
            scan_duration=round(time.monotonic() - started, 3),
            scan_metadata={"job_id": job.job_id, "report_url": result.get("report_url")},
        )
        db.session.add(entry)
        db.session.commit()
        app.logger.info("Saved URLScan job %s as history %s", job.job_id, entry.id)


@scan.route("/virustotal", methods=["POST"])
@login_required
def virustotal_scan():
    data = request_data()
    started = time.monotonic()
    result = scan_target(
        data.get("input") or data.get("target") or "",
        current_app.config.get("VIRUSTOTAL_API_KEY"),
        current_app.config.get("UPSTREAM_TIMEOUT", 15),
    )
    if isinstance(result, ServiceError):
        return service_error_response(result)

    payload = {"result": result.to_dict(), "history_id": None}
    # "scanning" abhi terminal nahi hai, isliye history me nahi jata
    if result.verdict != "scanning":
        entry = record_virustotal(session["user_id"], result, time.monotonic() - started)
        payload["history_id"] = entry.id
    return jsonify(payload)


@scan.route("/urlscan", methods=["POST"])
@login_required
def urlscan_submit():
    data = request_data()
    url = normalize_url(data.get("url"))
    user_id = session["user_id"]
    config = current_app.config
    app = current_app._get_current_object()
    started = time.monotonic()

    poller = ScanPoller(
        UrlScanClient(config.get("URLSCAN_API_KEY"), config.get("UPSTREAM_TIMEOUT", 15)),
        url,
        interval=config.get("URLSCAN_POLL_INTERVAL", 3),
        timeout=config.get("URLSCAN_POLL_TIMEOUT", 0),
        on_finish=lambda job: record_urlscan(app, user_id, started, job),
    )
    # Naya scan purane poller ko pehle cancel karta hai
    current_app.extensions["threatdesk.pollers"].start(user_id, poller)

    if poller.submit_error is not None:
        return service_error_response(poller.submit_error)
    return jsonify({"job": poller.snapshot()}), 202


@scan.route("/urlscan", methods=["GET"])
@login_required
def urlscan_status():
    poller = current_app.extensions["threatdesk.pollers"].get(session["user_id"])
    if poller is None:
        return jsonify({"error": "not_found", "message": "No URL scan in progress"}), 404
    return jsonify({"job": poller.snapshot()})


@scan.route("/urlscan", methods=["DELETE"])
@login_required
def urlscan_cancel():
    poller = current_app.extensions["threatdesk.pollers"].cancel(session["user_id"])
    if poller is None:
        return jsonify({"error": "not_found", "message": "No URL scan in progress"}), 404
    return jsonify({"job": poller.snapshot()})
