import os


def _int_env(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _feeds_from_env(raw):
    # "Label|https://..." ya sirf URL; label na ho to host hi source ban jata hai
    feeds = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        if "|" in part:
            label, url = part.split("|", 1)
            feeds.append({"source": label.strip(), "url": url.strip()})
        else:
            feeds.append({"source": part, "url": part})
    return feeds


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")

    _db_url = os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URI") or ""
    # Kuch providers postgres:// use karte hain; SQLAlchemy ko postgresql:// chahiye hota hai
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)

    SQLALCHEMY_DATABASE_URI = _db_url or "sqlite:///threatdesk.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    # Local dev me False rakho; production me HTTPS ke saath True karo
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "0") == "1"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Upstream API keys sirf server pe rehte hain, browser tak kabhi nahi jaate
    VIRUSTOTAL_API_KEY = os.getenv("VIRUSTOTAL_API_KEY", "")
    URLSCAN_API_KEY = os.getenv("URLSCAN_API_KEY", "")
    THREATFOX_API_KEY = os.getenv("THREATFOX_API_KEY", "")
    OTX_API_KEY = os.getenv("OTX_API_KEY", "")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-2025-04-14")

    UPSTREAM_TIMEOUT = _int_env("UPSTREAM_TIMEOUT", 15)

    URLSCAN_POLL_INTERVAL = float(os.getenv("URLSCAN_POLL_INTERVAL", "3"))
    # 0 = koi cap nahi (job hamesha terminate hoga, yeh maan ke chalna)
    URLSCAN_POLL_TIMEOUT = _int_env("URLSCAN_POLL_TIMEOUT", 300)

    RATE_LIMIT_MAX = _int_env("RATE_LIMIT_MAX", 10)
    RATE_LIMIT_WINDOW = _int_env("RATE_LIMIT_WINDOW", 3600)

    # Env me comma-separated list dekar override kar sakte ho, warna defaults use honge
    NEWS_FEEDS = _feeds_from_env(os.getenv("NEWS_FEEDS", "")) or [
        {"source": "The Hacker News", "url": "https://feeds.feedburner.com/TheHackersNews"},
        {"source": "Bleeping Computer", "url": "https://www.bleepingcomputer.com/feed/"},
        {"source": "Krebs on Security", "url": "https://krebsonsecurity.com/feed/"},
    ]


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    GOOGLE_CLIENT_ID = ""
    GOOGLE_CLIENT_SECRET = ""
    VIRUSTOTAL_API_KEY = "vt-test-key"
    URLSCAN_API_KEY = "urlscan-test-key"
    THREATFOX_API_KEY = ""
    OTX_API_KEY = ""
    OPENAI_API_KEY = "openai-test-key"
    URLSCAN_POLL_INTERVAL = 0
    URLSCAN_POLL_TIMEOUT = 0
    RATE_LIMIT_MAX = 5
    RATE_LIMIT_WINDOW = 60
