# ordering_backend/settings/staging.py
from .base import *  # noqa: F401,F403

# -----------------------------------------------------------------------------
# Staging Settings
# -----------------------------------------------------------------------------
DEBUG = False

ALLOWED_HOSTS = split_csv("DJANGO_ALLOWED_HOSTS", "staging.localhost")

# Allow plain HTTP behind the staging proxy
SECURE_SSL_REDIRECT = os.getenv("SECURE_SSL_REDIRECT", "0") == "1"

CORS_ALLOWED_ORIGINS = split_csv("CORS_ALLOWED_ORIGINS", "http://localhost:3000")

# -----------------------------------------------------------------------------
# Logging Configuration (Staging)
# -----------------------------------------------------------------------------
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING["handlers"]["file"] = {
    "level": "INFO",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOG_DIR / "ordering.json",
    "maxBytes": 1024 * 1024 * 15,  # 15MB
    "backupCount": 5,
    "formatter": "json",
    "filters": ["request_id"],
}

for logger_name in APP_LOGGERS:
    LOGGING["loggers"][logger_name]["handlers"] = ["console", "file"]

LOGGING["loggers"]["orders"]["level"] = "DEBUG"

# -----------------------------------------------------------------------------
# DRF Configuration (Staging)
# -----------------------------------------------------------------------------
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
    "anon": os.getenv("DRF_ANON_THROTTLE_RATE", "500/hour"),
    "user": os.getenv("DRF_USER_THROTTLE_RATE", "5000/hour"),
}

SPECTACULAR_SETTINGS["SERVE_INCLUDE_SCHEMA"] = True
