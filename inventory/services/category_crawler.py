"""
Category Crawler - process one page of a store's category tree.

A job fetches the categories below one node (or the root), persists every
leaf item and hands unexplored subcategories to the injected enqueue
callable. A node is expanded at most once per run (CrawlVisit), never into
itself, and never past INVENTORY_CRAWL_MAX_DEPTH, so the walk terminates
even when the provider's tree has cycles.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List

from django.conf import settings

from inventory.services.catalog_client import CatalogClient, CatalogItem
from inventory.services.crawl_job import CrawlJobPayload
from inventory.services.crawl_status import CrawlStatusTracker
from inventory.services.inventory_store import InventoryRecordStore

logger = logging.getLogger(__name__)


@dataclass
class CrawlPageResult:
    """What one job did."""

    store_id: str
    subcategory_id: str = None
    records_upserted: int = 0
    children: List[CrawlJobPayload] = field(default_factory=list)
    terminal_nodes: int = 0
    enqueue_failures: int = 0

    def to_dict(self):
        return {
            "store_id": self.store_id,
            "subcategory_id": self.subcategory_id,
            "records_upserted": self.records_upserted,
            "children_enqueued": len(self.children) - self.enqueue_failures,
            "terminal_nodes": self.terminal_nodes,
        }


class CategoryCrawler:
    """
    Crawl a single category page.

    Usage:
        crawler = CategoryCrawler(get_catalog_client(), enqueue=enqueue_crawl_job)
        result = crawler.process(payload)
    """

    def __init__(
        self,
        catalog_client: CatalogClient,
        enqueue: Callable[[CrawlJobPayload], None],
        tracker: CrawlStatusTracker = None,
        record_store: InventoryRecordStore = None,
        max_depth: int = None,
    ):
        self.catalog_client = catalog_client
        self.enqueue = enqueue
        self.tracker = tracker or CrawlStatusTracker()
        self.record_store = record_store or InventoryRecordStore()
        self.max_depth = (
            max_depth if max_depth is not None
            else getattr(settings, "INVENTORY_CRAWL_MAX_DEPTH", 10)
        )

    def process(self, payload: CrawlJobPayload) -> CrawlPageResult:
        """
        Fetch, persist and expand one category page.

        Raises:
            ProviderUnavailable: If the page could not be fetched
        """
        page = self.catalog_client.fetch_categories(
            payload.store_id,
            payload.subcategory_id,
            payload.location,
            payload.address,
        )

        result = CrawlPageResult(store_id=payload.store_id, subcategory_id=payload.subcategory_id)
        staged: List[CatalogItem] = []
        expandable: List[str] = []

        for category in page.categories:
            if category.items:
                staged.extend(category.items)
            elif category.subcategory_id:
                expandable.append(category.subcategory_id)

        result.records_upserted = self.record_store.upsert_items(payload.store_id, staged)

        for subcategory_id in expandable:
            if self._claim(payload, subcategory_id):
                result.children.append(payload.child(subcategory_id))
            else:
                result.terminal_nodes += 1

        self._enqueue_children(payload, result)

        logger.info(
            f"Crawled store {payload.store_id} node {payload.subcategory_id or 'root'} "
            f"(depth {payload.depth}): {result.records_upserted} records, "
            f"{len(result.children)} children"
        )
        return result

    def _claim(self, payload: CrawlJobPayload, subcategory_id: str) -> bool:
        """True if subcategory_id should become a new job of this run."""
        if subcategory_id == payload.subcategory_id:
            logger.debug(f"Category {subcategory_id} references itself, not expanding")
            return False
        if payload.depth + 1 > self.max_depth:
            logger.warning(
                f"Max depth {self.max_depth} reached for store {payload.store_id} "
                f"at {subcategory_id}"
            )
            return False
        return self.tracker.mark_visited(
            payload.run_id,
            subcategory_id,
            store_id=payload.store_id,
            depth=payload.depth + 1,
        )

    def _enqueue_children(self, payload: CrawlJobPayload, result: CrawlPageResult) -> None:
        if not result.children:
            return

        # Counted before enqueueing so the run cannot complete early
        self.tracker.job_enqueued(payload.run_id, len(result.children))

        for child in result.children:
            try:
                self.enqueue(child)
            except Exception as e:
                logger.error(
                    f"Failed to enqueue category {child.subcategory_id} "
                    f"for store {child.store_id}: {e}"
                )
                result.enqueue_failures += 1
                self.tracker.job_finished(child.run_id, failed=True)
