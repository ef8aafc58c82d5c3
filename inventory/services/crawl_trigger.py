"""
Crawl triggers - start the root job of an admitted crawl run.

HttpCrawlTrigger posts the root payload to an external starter
(INVENTORY_TRIGGER_URL), which ends up in views.process_inventory.
QueueCrawlTrigger enqueues the root job directly when no URL is configured.
"""

import logging

import requests
from django.conf import settings

from inventory.exceptions import TriggerFailed
from inventory.services.crawl_job import CrawlJobPayload

logger = logging.getLogger(__name__)


class HttpCrawlTrigger:
    """POST the root job payload to the inventory processing endpoint."""

    def __init__(self, url: str, token: str = "", timeout: int = None):
        self.url = url
        self.token = token
        self.timeout = timeout or getattr(settings, "INVENTORY_TRIGGER_TIMEOUT", 10)

    def start(self, payload: CrawlJobPayload) -> None:
        """
        Raises:
            TriggerFailed: On network errors or a non-2xx response
        """
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = requests.post(
                self.url,
                json=payload.to_dict(),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Inventory trigger request failed for store {payload.store_id}: {e}")
            raise TriggerFailed(f"Inventory trigger request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Inventory trigger for store {payload.store_id} returned HTTP {response.status_code}"
            )
            raise TriggerFailed(
                f"Inventory trigger returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(f"Triggered inventory processing for store {payload.store_id}")


class QueueCrawlTrigger:
    """Enqueue the root crawl job on the crawl queue."""

    def start(self, payload: CrawlJobPayload) -> None:
        # Imported here: tasks imports the services package
        from inventory.tasks import enqueue_crawl_job

        try:
            enqueue_crawl_job(payload)
        except Exception as e:
            logger.error(f"Could not enqueue root crawl job for store {payload.store_id}: {e}")
            raise TriggerFailed(f"Could not enqueue root crawl job: {e}") from e


def get_crawl_trigger():
    """Build the configured trigger."""
    url = getattr(settings, "INVENTORY_TRIGGER_URL", "")
    if url:
        return HttpCrawlTrigger(url, token=getattr(settings, "INVENTORY_TRIGGER_TOKEN", ""))
    return QueueCrawlTrigger()
