import secrets
from functools import wraps

from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import InputValidationError
from ..extensions import db, oauth
from ..models.user_model import User

auth = Blueprint("auth", __name__, url_prefix="/auth")


def request_data():
    # JSON object ho ya HTML form, dono accept; array/scalar body ko khaali maan lo
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"error": "login_required"}), 401
        return view(*args, **kwargs)
    return wrapped


def get_google_client():
    existing = oauth.create_client("google")
    if existing:
        return existing

    client_id = current_app.config.get("GOOGLE_CLIENT_ID")
    client_secret = current_app.config.get("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        return None

    oauth.register(
        name="google",
        client_id=client_id,
        client_secret=client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    return oauth.create_client("google")


def _login(user):
    session.clear()
    session["user_id"] = user.id
    session["username"] = user.email


@auth.route("/register", methods=["POST"])
def register():
    data = request_data()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or "@" not in email:
        raise InputValidationError("A valid email is required")
    if len(password) < 8:
        raise InputValidationError("Password must be at least 8 characters")

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "email_taken", "message": "This email is already registered. Please login."}), 409

    new_user = User(
        email=email,
        password=generate_password_hash(password),
        full_name=(data.get("full_name") or "").strip() or None,
    )
    db.session.add(new_user)
    db.session.commit()
    current_app.logger.info("Registered user %s", new_user.id)

    return jsonify({"user": new_user.to_dict()}), 201


@auth.route("/login", methods=["POST"])
def login():
    data = request_data()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if user and user.password and check_password_hash(user.password, password):
        _login(user)
        return jsonify({"user": user.to_dict()})

    return jsonify({"error": "invalid_credentials", "message": "Invalid email or password."}), 401


@auth.route("/logout", methods=["POST"])
def logout():
    current_app.extensions["threatdesk.pollers"].cancel(session.get("user_id"))
    session.clear()
    return jsonify({"status": "logged_out"})


@auth.route("/me")
@login_required
def me():
    user = db.session.get(User, session["user_id"])
    if user is None:
        session.clear()
        return jsonify({"error": "login_required"}), 401
    return jsonify({"user": user.to_dict()})


@auth.route("/me", methods=["PATCH"])
@login_required
def update_me():
    user = db.session.get(User, session["user_id"])
    if user is None:
        session.clear()
        return jsonify({"error": "login_required"}), 401

    data = request_data()
    if "full_name" in data:
        user.full_name = (data.get("full_name") or "").strip() or None
    if data.get("password"):
        if len(data["password"]) < 8:
            raise InputValidationError("Password must be at least 8 characters")
        user.password = generate_password_hash(data["password"])
    db.session.commit()
    return jsonify({"user": user.to_dict()})


@auth.route("/google/login")
def google_login():
    google = get_google_client()
    if not google:
        return jsonify({
            "error": "service_not_configured",
            "message": "Google login not configured. Set GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET.",
        }), 503

    # Previous failed attempts ka stale OAuth state/nonce remove kar rahe hain
    for key in list(session.keys()):
        if key.startswith("_state_google_") or key.startswith("_nonce_google_"):
            session.pop(key, None)

    redirect_uri = url_for("auth.google_callback", _external=True)
    return google.authorize_redirect(redirect_uri, prompt="select_account")


@auth.route("/google/callback")
def google_callback():
    google = get_google_client()
    if not google:
        return jsonify({"error": "service_not_configured", "message": "Google login not configured."}), 503

    try:
        token = google.authorize_access_token()
        user_info = token.get("userinfo")
        if not user_info:
            user_info = google.userinfo()
    except Exception:
        current_app.logger.exception("Google OAuth callback failed")
        return jsonify({
            "error": "oauth_failed",
            "message": "Google login failed. Check redirect URI, OAuth consent/test user settings, and client secret.",
        }), 400

    email = ((user_info or {}).get("email") or "").lower()
    if not email:
        return jsonify({"error": "oauth_failed", "message": "Google account email not available."}), 400

    user = User.query.filter_by(email=email).first()
    if not user:
        user = User(
            email=email,
            password=generate_password_hash(secrets.token_urlsafe(24)),
            full_name=(user_info or {}).get("name"),
        )
        db.session.add(user)
        db.session.commit()

    _login(user)
    return redirect("/dashboard")
