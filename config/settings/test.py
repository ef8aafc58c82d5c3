"""
Test settings for the Grocery Inventory Service.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Test database - in-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Test Cache - use local memory cache
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "unique-snowflake",
    }
}

# Test Celery - run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Test logging - minimal output
LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["inventory"]["level"] = "WARNING"

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable Sentry in tests
SENTRY_DSN = ""

# Test service settings - fail fast, never reach real services
CATALOG_PROVIDER_URL = "https://catalog.test"
CATALOG_PROVIDER_API_KEY = "test-catalog-key"
CATALOG_REQUEST_TIMEOUT = 5
CATALOG_RATE_LIMIT_PER_MINUTE = 10000

INVENTORY_CRAWL_MAX_RETRIES = 0
INVENTORY_CRAWL_RETRY_DELAY = 0
INVENTORY_TRIGGER_URL = ""

REASONING_SERVICE_URL = "https://reasoning.test"
REASONING_SERVICE_TOKEN = "test-reasoning-token"
REASONING_TIMEOUT = 5
