import atexit
import logging
import weakref

from flask import Flask, jsonify, session

from .config import Config
from .errors import register_error_handlers
from .extensions import db, oauth
from .services.rate_limiter import MemoryRateLimitStore, RateLimiter
from .services.scan_poller import PollerRegistry

# Har app ka registry yahan track hota hai; exit hook process me sirf ek baar lagta hai
_poller_registries = weakref.WeakSet()


def _cancel_all_pollers():
    for registry in list(_poller_registries):
        registry.cancel_all()


atexit.register(_cancel_all_pollers)


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(level)
    if not package_logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)


def create_app(config_object=None):

    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    configure_logging(app)

    db.init_app(app)
    oauth.init_app(app)
    register_error_handlers(app)

    # Process-local state, har app instance ka apna (tests isolate rehte hain)
    app.extensions["threatdesk.rate_limiter"] = RateLimiter(
        app.config["RATE_LIMIT_MAX"],
        app.config["RATE_LIMIT_WINDOW"],
        store=MemoryRateLimitStore(),
    )
    pollers = PollerRegistry()
    app.extensions["threatdesk.pollers"] = pollers
    _poller_registries.add(pollers)

    from .routes.auth_routes import auth
    from .routes.dashboard_routes import dashboard
    from .routes.record_routes import history, incidents, iocs, watchlists
    from .routes.scan_routes import scan

    app.register_blueprint(auth)
    app.register_blueprint(dashboard)
    app.register_blueprint(scan)
    app.register_blueprint(iocs)
    app.register_blueprint(history)
    app.register_blueprint(incidents)
    app.register_blueprint(watchlists)

    @app.route("/")
    def home():
        return jsonify({
            "service": "threatdesk",
            "authenticated": "user_id" in session,
        })

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    with app.app_context():
        from .models.incident_model import SecurityIncident
        from .models.ioc_model import ThreatIndicator
        from .models.scan_model import ScanHistory
        from .models.user_model import User
        from .models.watchlist_model import Watchlist
        db.create_all()

    return app
