"""
Inventory service views.

- health_check: monitoring and load balancer checks
- process_inventory: receiving side of the inventory processing trigger
"""

import hmac
import logging
import uuid

from django.conf import settings
from django.db import connection
from django.http import JsonResponse
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import BasePermission
from rest_framework.response import Response

from inventory.models import CrawlStatus
from inventory.services.crawl_job import CrawlJobPayload

logger = logging.getLogger(__name__)


def get_redis_connection():
    """
    Get Redis connection for health check.

    Returns:
        Redis client if the cache is django-redis, None otherwise.
    """
    from django.core.cache import cache

    if hasattr(cache, "client") and hasattr(cache.client, "get_client"):
        return cache.client.get_client()
    return None


def get_celery_worker_count():
    """Number of Celery workers answering an inspect ping, 0 if none."""
    from config.celery import app as celery_app

    try:
        active = celery_app.control.inspect(timeout=1.0).active()
    except Exception as e:
        logger.debug(f"Celery inspect failed: {e}")
        return 0
    return len(active) if active else 0


def health_check(request):
    """
    Health check endpoint for the inventory service.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - redis: "connected", "not_configured", or "error"
        - celery_workers: integer count of active workers
        - crawls_in_progress: stores with a running crawl

    Returns:
        HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status_text = "healthy"
    http_status = 200

    database_status = "connected"
    crawls_in_progress = None
    try:
        connection.ensure_connection()
        crawls_in_progress = CrawlStatus.objects.filter(is_processing=True).count()
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database_status = "error"
        status_text = "unhealthy"
        http_status = 503

    redis_status = "not_configured"
    try:
        redis_client = get_redis_connection()
        if redis_client is not None:
            redis_status = "connected" if redis_client.ping() else "error"
    except Exception as e:
        logger.warning(f"Health check redis error: {e}")
        redis_status = "error"

    return JsonResponse(
        {
            "status": status_text,
            "database": database_status,
            "redis": redis_status,
            "celery_workers": get_celery_worker_count(),
            "crawls_in_progress": crawls_in_progress,
        },
        status=http_status,
    )


class HasTriggerToken(BasePermission):
    """
    Bearer token check for the trigger receiver.

    When INVENTORY_TRIGGER_TOKEN is empty, an authenticated session is
    required instead.
    """

    def has_permission(self, request, view):
        token = getattr(settings, "INVENTORY_TRIGGER_TOKEN", "")
        if not token:
            return bool(request.user and request.user.is_authenticated)

        header = request.META.get("HTTP_AUTHORIZATION", "")
        return hmac.compare_digest(header, f"Bearer {token}")


@extend_schema(
    summary="Start inventory processing",
    description="Enqueue the root crawl job of an admitted crawl run.",
    request={"application/json": {"type": "object"}},
    responses={
        202: {"description": "Root job enqueued"},
        400: {"description": "Missing store_id or run_id, or run_id is not a UUID"},
        409: {"description": "The run is not the store's current crawl"},
    },
)
@api_view(["POST"])
@permission_classes([HasTriggerToken])
def process_inventory(request):
    """
    Enqueue the root crawl job for an admitted run.

    Request body (CrawlJobPayload):
    {
        "store_id": "...",
        "run_id": "...",
        "location": {"latitude": 40.7, "longitude": -74.0},
        "address": {"street_num": "...", "street_name": "...", "city": "...",
                    "state": "...", "zipcode": "...", "country": "US"}
    }
    """
    data = request.data
    if not data.get("store_id") or not data.get("run_id"):
        return Response(
            {"error": "store_id and run_id are required"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    try:
        uuid.UUID(str(data["run_id"]))
    except ValueError:
        return Response(
            {"error": "run_id must be a UUID"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    payload = CrawlJobPayload.from_dict(data)
    is_current = CrawlStatus.objects.filter(
        store_id=payload.store_id,
        run_id=payload.run_id,
        is_processing=True,
    ).exists()
    if not is_current:
        logger.warning(f"Ignoring trigger for store {payload.store_id}: run {payload.run_id} is not current")
        return Response(
            {"error": "Run is not in progress", "store_id": payload.store_id},
            status=status.HTTP_409_CONFLICT,
        )

    # Root job always starts at the top of the tree
    payload.subcategory_id = None
    payload.depth = 0

    from inventory.tasks import enqueue_crawl_job

    enqueue_crawl_job(payload)
    logger.info(f"Enqueued root crawl job for store {payload.store_id} (run {payload.run_id})")

    return Response(
        {"status": "queued", "store_id": payload.store_id, "run_id": payload.run_id},
        status=status.HTTP_202_ACCEPTED,
    )
