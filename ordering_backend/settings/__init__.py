# ordering_backend/settings/__init__.py
"""
Django settings package for the ordering backend.

This package provides environment-specific settings:
- development: Local development with debug enabled
- staging: Production-like environment for testing
- production: Production environment with security hardening
- test: In-memory everything for the pytest suite

``DJANGO_SETTINGS_MODULE=ordering_backend.settings`` picks a module from the
ENVIRONMENT variable. Pointing DJANGO_SETTINGS_MODULE at a submodule
(for example ``ordering_backend.settings.test``) skips the selection.
"""

import logging
import os
import sys

logger = logging.getLogger(__name__)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

VALID_ENVIRONMENTS = ["development", "staging", "production", "test"]
if ENVIRONMENT not in VALID_ENVIRONMENTS:
    raise ValueError(
        f"Invalid ENVIRONMENT '{ENVIRONMENT}'. "
        f"Must be one of: {', '.join(VALID_ENVIRONMENTS)}"
    )

_SELECTED = os.getenv("DJANGO_SETTINGS_MODULE", __name__) == __name__

if _SELECTED:
    if ENVIRONMENT == "production":
        from .production import *  # noqa: F401,F403
    elif ENVIRONMENT == "staging":
        from .staging import *  # noqa: F401,F403
    elif ENVIRONMENT == "test":
        from .test import *  # noqa: F401,F403
    else:
        from .development import *  # noqa: F401,F403

    def validate_settings():
        """Validate critical settings are properly configured."""
        errors = []
        if not DATABASES.get("default"):  # noqa: F405
            errors.append("Database configuration is missing")
        if ENVIRONMENT == "production" and not ALLOWED_HOSTS:  # noqa: F405
            errors.append("ALLOWED_HOSTS must be configured for production")
        if ENVIRONMENT == "production" and DEBUG:  # noqa: F405
            errors.append("DEBUG should be False in production")
        if errors:
            error_msg = "\n".join([f"  - {error}" for error in errors])
            raise ValueError(f"Settings validation failed:\n{error_msg}")

    if "migrate" not in sys.argv and "collectstatic" not in sys.argv:
        try:
            validate_settings()
        except ValueError as e:
            if ENVIRONMENT == "production":
                raise
            logger.warning("Settings validation warning: %s", e)
