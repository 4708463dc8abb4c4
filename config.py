import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as referral_security.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "referral_security.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer token for the /admin operator API (unset = admin API refuses all calls)
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Brute-force protection: N login failures per address inside the
    # sliding window install an automatic block
    BRUTE_FORCE_THRESHOLD = int(os.getenv("BRUTE_FORCE_THRESHOLD", "5"))
    BRUTE_FORCE_WINDOW_MINUTES = int(os.getenv("BRUTE_FORCE_WINDOW_MINUTES", "15"))
    AUTO_BLOCK_HOURS = float(os.getenv("AUTO_BLOCK_HOURS", "1"))

    # Security log listing
    SECURITY_LOG_DEFAULT_LIMIT = 100
    SECURITY_LOG_MAX_LIMIT = 500
    SECURITY_STATS_WINDOW_HOURS = 24

    # Live stream of new security events (server-sent events)
    SECURITY_STREAM_KEEPALIVE_SECONDS = 15
    SECURITY_STREAM_QUEUE_SIZE = 200

    # Callable returning naive UTC "now"; None uses the wall clock
    SECURITY_CLOCK = None

    # Basic app settings
    DEBUG = False
