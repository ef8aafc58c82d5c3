"""
Django base settings for the Grocery Inventory Service.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path

import sentry_sdk
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-inventory-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "inventory",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Internationalization

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache (rate limiter counters live here)
# Configured in environment-specific settings

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 10 * 60  # a single category page or match chunk
CELERY_TASK_ACKS_LATE = True

# Task routing - crawl and matching queues
CELERY_TASK_ROUTES = {
    "inventory.tasks.crawl_*": {"queue": "crawl"},
    "inventory.tasks.resolve_*": {"queue": "matching"},
}


# Django REST Framework Configuration

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Grocery Inventory Service API",
    "DESCRIPTION": "Inventory crawling and shopping-list matching",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "inventory": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2"))

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Catalog Provider

CATALOG_PROVIDER_URL = os.getenv("CATALOG_PROVIDER_URL", "https://api.mealme.ai")
CATALOG_PROVIDER_API_KEY = os.getenv("CATALOG_PROVIDER_API_KEY", "")
CATALOG_REQUEST_TIMEOUT = int(os.getenv("CATALOG_REQUEST_TIMEOUT", "30"))

# Provider quota: requests per minute shared by all workers
CATALOG_RATE_LIMIT_PER_MINUTE = int(os.getenv("CATALOG_RATE_LIMIT_PER_MINUTE", "60"))


# Inventory Crawl

# A store is not re-crawled within this many hours of its last completed crawl
INVENTORY_CRAWL_COOLDOWN_HOURS = int(os.getenv("INVENTORY_CRAWL_COOLDOWN_HOURS", "24"))

# An in-progress crawl older than this is considered abandoned and may be reclaimed
INVENTORY_CRAWL_STALE_AFTER_HOURS = int(os.getenv("INVENTORY_CRAWL_STALE_AFTER_HOURS", "6"))

INVENTORY_CRAWL_MAX_DEPTH = int(os.getenv("INVENTORY_CRAWL_MAX_DEPTH", "10"))
INVENTORY_CRAWL_MAX_RETRIES = int(os.getenv("INVENTORY_CRAWL_MAX_RETRIES", "3"))
INVENTORY_CRAWL_RETRY_DELAY = int(os.getenv("INVENTORY_CRAWL_RETRY_DELAY", "60"))

# External starter for inventory processing. Empty means enqueue directly.
INVENTORY_TRIGGER_URL = os.getenv("INVENTORY_TRIGGER_URL", "")
INVENTORY_TRIGGER_TOKEN = os.getenv("INVENTORY_TRIGGER_TOKEN", "")
INVENTORY_TRIGGER_TIMEOUT = int(os.getenv("INVENTORY_TRIGGER_TIMEOUT", "10"))


# Store Result Cache

STORE_CACHE_FRESHNESS_DAYS = int(os.getenv("STORE_CACHE_FRESHNESS_DAYS", "7"))

# Half-width of the lookup box in degrees, or "radius" to derive it from the
# requested search radius.
_store_box = os.getenv("STORE_CACHE_BOX_DEGREES", "0.5")
STORE_CACHE_BOX_DEGREES = None if _store_box.lower() == "radius" else float(_store_box)
STORE_SEARCH_DEFAULT_MILES = float(os.getenv("STORE_SEARCH_DEFAULT_MILES", "3"))
STORE_SEARCH_STORE_TYPE = os.getenv("STORE_SEARCH_STORE_TYPE", "grocery")

# Store names containing any of these are not grocery stores
STORE_EXCLUDED_NAME_TERMS = [
    "pharmacy",
    "liquor",
    "wine & spirits",
    "pet",
    "florist",
    "flowers",
    "hardware",
    "vape",
    "smoke shop",
    "tobacco",
]


# Reasoning Service (OpenAI-compatible chat completions)

REASONING_SERVICE_URL = os.getenv("REASONING_SERVICE_URL", "https://api.openai.com")
REASONING_SERVICE_TOKEN = os.getenv("REASONING_SERVICE_TOKEN", "")
REASONING_MODEL = os.getenv("REASONING_MODEL", "gpt-4o")
REASONING_TIMEOUT = float(os.getenv("REASONING_TIMEOUT", "60"))
REASONING_TEMPERATURE = float(os.getenv("REASONING_TEMPERATURE", "1.0"))


# Item Matcher

MATCHER_CHUNK_SIZE = int(os.getenv("MATCHER_CHUNK_SIZE", "15"))
MATCHER_CANDIDATE_LIMIT = int(os.getenv("MATCHER_CANDIDATE_LIMIT", "200"))
MATCHER_CANDIDATES_PER_ITEM = int(os.getenv("MATCHER_CANDIDATES_PER_ITEM", "25"))
