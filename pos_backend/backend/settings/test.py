# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS
- in-memory SQLite
- fast password hashing
- isolated local-memory cache (stock entry grids)
- throttling off
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, REST_FRAMEWORK  # explicit for Ruff (F405)

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "pos-backend-tests",
    }
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_CLASSES": (),
}

INVENTORY_UNDERFLOW_POLICY = "clamp"
INVENTORY_DEFAULT_EXPIRY_DAYS = 365
STOCK_ENTRY_SESSION_TTL = 60 * 60

LOGGING["loggers"]["products"]["level"] = "WARNING"
LOGGING["loggers"]["stock_entry"]["level"] = "WARNING"
