import csv
import io

from flask import Blueprint, Response, current_app, jsonify, session

from ..errors import service_error_response
from ..models.incident_model import SecurityIncident
from ..models.ioc_model import ThreatIndicator
from ..models.scan_model import ScanHistory
from ..models.watchlist_model import Watchlist
from ..services.chat_service import ask_assistant
from ..services.news_service import get_security_news
from ..services.results import ServiceError
from ..services.threat_feed_service import fetch_threat_feed
from .auth_routes import login_required, request_data

dashboard = Blueprint("dashboard", __name__)


@dashboard.route("/news")
def news():
    # Public endpoint theek hai; yeh sirf pre-configured RSS feeds hi fetch karta hai
    config = current_app.config
    items = get_security_news(config.get("NEWS_FEEDS", []), timeout=config.get("UPSTREAM_TIMEOUT", 15))
    return jsonify({"news": [item.to_dict() for item in items]})


@dashboard.route("/threats")
@login_required
def threats():
    config = current_app.config
    indicators, errors = fetch_threat_feed(
        threatfox_key=config.get("THREATFOX_API_KEY"),
        otx_key=config.get("OTX_API_KEY"),
        timeout=config.get("UPSTREAM_TIMEOUT", 15),
    )
    return jsonify({
        "threats": [i.to_dict() for i in indicators],
        "errors": [e.to_dict() for e in errors],
    })


@dashboard.route("/chat", methods=["POST"])
@login_required
def chat():
    payload = request_data()
    config = current_app.config
    reply = ask_assistant(
        payload.get("message") or "",
        config.get("OPENAI_API_KEY"),
        config.get("OPENAI_MODEL"),
        timeout=max(config.get("UPSTREAM_TIMEOUT", 15), 30),
    )
    if isinstance(reply, ServiceError):
        return service_error_response(reply)
    return jsonify(reply.to_dict())


@dashboard.route("/dashboard/export.csv")
@login_required
def export_csv():
    scans = (
        ScanHistory.query.filter_by(user_id=session["user_id"])
        .order_by(ScanHistory.created_at.desc(), ScanHistory.id.desc())
        .all()
    )
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["created_at", "scan_type", "target", "target_type", "status", "verdict", "threat_score"])
    for scan in scans:
        writer.writerow([
            scan.created_at.isoformat() if scan.created_at else "",
            scan.scan_type,
            scan.target,
            scan.target_type,
            scan.status,
            scan.verdict,
            "" if scan.threat_score is None else scan.threat_score,
        ])

    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=threatdesk_scans.csv"},
    )


@dashboard.route("/dashboard")
@login_required
def dashboard_home():
    user_id = session["user_id"]
    scans = ScanHistory.query.filter_by(user_id=user_id).order_by(ScanHistory.created_at.desc()).all()

    verdicts = {}
    for s in scans:
        verdicts[s.verdict] = verdicts.get(s.verdict, 0) + 1

    # Charts ke liye simple daily trend data
    daily = {}
    for s in scans:
        if not s.created_at:
            continue
        day = s.created_at.strftime("%Y-%m-%d")
        daily.setdefault(day, {"count": 0, "score_sum": 0, "scored": 0})
        daily[day]["count"] += 1
        if s.threat_score is not None:
            daily[day]["score_sum"] += int(s.threat_score)
            daily[day]["scored"] += 1

    trend_labels = sorted(daily.keys())
    open_incidents = SecurityIncident.query.filter(
        SecurityIncident.user_id == user_id,
        SecurityIncident.status.in_(("open", "investigating")),
    ).count()

    return jsonify({
        "username": session.get("username", "User"),
        "total_scans": len(scans),
        "verdicts": verdicts,
        "recent_scans": [s.to_dict() for s in scans[:5]],
        "trend": {
            "labels": trend_labels,
            "counts": [daily[d]["count"] for d in trend_labels],
            "avg_threat_score": [
                int(daily[d]["score_sum"] / daily[d]["scored"]) if daily[d]["scored"] else 0
                for d in trend_labels
            ],
        },
        "iocs": ThreatIndicator.query.filter_by(user_id=user_id).count(),
        "open_incidents": open_incidents,
        "active_watchlists": Watchlist.query.filter_by(user_id=user_id, is_active=True).count(),
    })
