# ordering_backend/settings/test.py
from .base import *  # noqa: F401,F403

# -----------------------------------------------------------------------------
# Test Settings
# -----------------------------------------------------------------------------
DEBUG = False
ALLOWED_HOSTS = ["testserver", "localhost"]

SECRET_KEY = "test-only-ordering-secret-key-not-for-production"
SIMPLE_JWT["SIGNING_KEY"] = SECRET_KEY

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "ordering-tests",
    }
}

CHANNEL_LAYERS = {
    "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []

STRIPE_SECRET_KEY = "sk_test_ordering"

# Console only; nothing is written to disk during tests
LOGGING["root"]["level"] = "WARNING"
for logger_name in APP_LOGGERS:
    LOGGING["loggers"][logger_name]["level"] = "WARNING"
