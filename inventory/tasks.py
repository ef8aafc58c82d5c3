"""
Celery tasks for the Grocery Inventory Service.

Tasks:
- crawl_category: Process one category page of a store crawl run
- resolve_matches: Resolve a desired-items list into a MatchSet
"""

import logging
from typing import Any, Dict, List

from celery import shared_task
from django.conf import settings

from inventory.exceptions import MatchingFailed, ProviderUnavailable
from inventory.monitoring import add_crawl_breadcrumb, capture_job_failure
from inventory.services.catalog_client import get_catalog_client
from inventory.services.category_crawler import CategoryCrawler
from inventory.services.crawl_job import CrawlJobPayload
from inventory.services.crawl_status import CrawlStatusTracker
from inventory.services.item_matcher import ItemMatcher

logger = logging.getLogger(__name__)


def enqueue_crawl_job(payload: CrawlJobPayload) -> None:
    """Dispatch a crawl job to the crawl queue."""
    crawl_category.apply_async(args=[payload.to_dict()], queue="crawl")


@shared_task(name="inventory.tasks.crawl_category", bind=True)
def crawl_category(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crawl worker task - fetch one category page, persist it, expand children.

    Provider failures are retried up to INVENTORY_CRAWL_MAX_RETRIES times.
    After the last attempt (or on any other error) the job is counted as
    failed and finished, so the rest of the run is unaffected.

    Args:
        payload: CrawlJobPayload as a dict

    Returns:
        Dict with job results
    """
    job = CrawlJobPayload.from_dict(payload)
    tracker = CrawlStatusTracker()

    logger.info(
        f"Starting crawl job for store {job.store_id}, "
        f"node {job.subcategory_id or 'root'} (run {job.run_id})"
    )
    add_crawl_breadcrumb(
        store_id=job.store_id,
        run_id=job.run_id,
        subcategory_id=job.subcategory_id,
        message="Crawl job started",
        extra_data={"depth": job.depth, "attempt": self.request.retries + 1},
    )

    try:
        crawler = CategoryCrawler(get_catalog_client(), enqueue=enqueue_crawl_job, tracker=tracker)
        result = crawler.process(job)
    except ProviderUnavailable as e:
        max_retries = getattr(settings, "INVENTORY_CRAWL_MAX_RETRIES", 3)
        if self.request.retries < max_retries:
            logger.warning(
                f"Catalog provider unavailable for store {job.store_id}, "
                f"retry {self.request.retries + 1}/{max_retries}: {e}"
            )
            raise self.retry(
                exc=e,
                countdown=getattr(settings, "INVENTORY_CRAWL_RETRY_DELAY", 60),
                max_retries=max_retries,
            )
        return _fail_job(tracker, job, e)
    except Exception as e:
        return _fail_job(tracker, job, e)

    completed = tracker.job_finished(job.run_id, records=result.records_upserted)

    return {
        **result.to_dict(),
        "run_id": job.run_id,
        "status": "completed",
        "run_completed": completed,
    }


def _fail_job(tracker: CrawlStatusTracker, job: CrawlJobPayload, error: Exception) -> Dict[str, Any]:
    capture_job_failure(
        error,
        "crawl_category",
        store_id=job.store_id,
        extra_context={
            "run_id": job.run_id,
            "subcategory_id": job.subcategory_id,
            "depth": job.depth,
        },
    )
    completed = tracker.job_finished(job.run_id, failed=True)
    return {
        "store_id": job.store_id,
        "subcategory_id": job.subcategory_id,
        "run_id": job.run_id,
        "status": "failed",
        "error": str(error),
        "run_completed": completed,
    }


@shared_task(name="inventory.tasks.resolve_matches", bind=True)
def resolve_matches(
    self,
    store_id: str,
    influencer_id: str,
    items: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Matching worker task - resolve desired items for (store, influencer).

    Returns:
        Dict with the match set id and match count
    """
    logger.info(f"Resolving {len(items)} items for influencer {influencer_id} at store {store_id}")

    try:
        match_set = ItemMatcher().resolve(store_id, influencer_id, items)
    except MatchingFailed as e:
        capture_job_failure(
            e,
            "resolve_matches",
            store_id=store_id,
            extra_context={"influencer_id": influencer_id, "items": len(items)},
        )
        raise

    return {
        "store_id": store_id,
        "influencer_id": influencer_id,
        "match_set_id": str(match_set.id),
        "matches": len(match_set.matches),
        "status": "completed",
    }


def enqueue_match_job(store_id: str, influencer_id: str, items: List[Dict[str, Any]]):
    """
    Validate and dispatch a match job.

    Raises:
        ValueError: If store_id, influencer_id or items are missing
    """
    if not store_id or not influencer_id or not items:
        raise ValueError("store_id, influencer_id and items are required")
    if not isinstance(items, list):
        raise ValueError("items must be a list")

    logger.info(f"Queueing match job for influencer {influencer_id} at store {store_id}")
    return resolve_matches.apply_async(args=[store_id, influencer_id, items], queue="matching")
