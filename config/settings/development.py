"""
Development settings for the Grocery Inventory Service.

Uses local SQLite, Redis, and relaxed settings for development.
"""

import os
from .base import *

DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Development database - SQLite for simplicity
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Development Cache - use database cache (no Redis needed for local dev)
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "cache_table",
    }
}

# Development Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# Development logging - verbose output
LOGGING["loggers"]["django"]["level"] = "DEBUG"
LOGGING["loggers"]["inventory"]["level"] = "DEBUG"

INTERNAL_IPS = ["127.0.0.1"]

# Relaxed crawl settings for development
INVENTORY_CRAWL_COOLDOWN_HOURS = 1
INVENTORY_CRAWL_MAX_RETRIES = 1  # Fail fast in development
INVENTORY_CRAWL_RETRY_DELAY = 5
