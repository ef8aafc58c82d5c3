"""
Sentry error tracking for crawl and matching jobs.

- Adds breadcrumbs for crawl context (store, run, category)
- Filters sensitive data (API keys, tokens, authorization)
- Captures job failures with their context

Sentry itself is initialised in config/settings/base.py when SENTRY_DSN is
set; without it the SDK calls below are no-ops.

Usage:
    from inventory.monitoring import capture_job_failure

    try:
        crawler.process(payload)
    except ProviderUnavailable as e:
        capture_job_failure(e, "crawl_category", store_id=payload.store_id)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "api_key",
    "apikey",
    "api-key",
    "id-token",
    "authorization",
    "password",
    "secret",
    "token",
}


def filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values of keys that look like credentials, recursively.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Copy with sensitive values replaced by "[Filtered]"
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = filter_sensitive_data(value)
        else:
            filtered[key] = value
    return filtered


def add_crawl_breadcrumb(
    store_id: str,
    run_id: Optional[str] = None,
    subcategory_id: Optional[str] = None,
    message: str = "Crawl operation",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """Record a crawl step so failures show the sequence that led to them."""
    data = {
        "store_id": store_id,
        "run_id": run_id,
        "subcategory_id": subcategory_id or "root",
    }
    if extra_data:
        data.update(filter_sensitive_data(extra_data))

    sentry_sdk.add_breadcrumb(category="crawl", message=message, level=level, data=data)


def capture_job_failure(
    error: Exception,
    job_name: str,
    store_id: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a job failure to Sentry with its context.

    Args:
        error: The exception that ended the job
        job_name: Task name, used as a tag
        store_id: Store the job worked on
        extra_context: Additional context (filtered for sensitive data)
    """
    logger.error(f"{job_name} failed for store {store_id}: {type(error).__name__}: {error}")

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("inventory.job", job_name)
        if store_id:
            scope.set_tag("inventory.store_id", store_id)
        if extra_context:
            scope.set_extra("job_context", filter_sensitive_data(extra_context))
        sentry_sdk.capture_exception(error)
