"""
Services module for the Grocery Inventory Service.

Contains:
- catalog_client: Catalog provider API client
- inventory_store: Inventory record persistence
- crawl_status: Crawl admission control and run bookkeeping
- category_crawler: Single category page crawl
- store_cache: Proximity store search cache
- reasoning_client: Reasoning service API client
- item_matcher: Shopping-list item matching pipeline
"""

from inventory.services.catalog_client import (
    CatalogClient,
    CatalogCategory,
    CatalogItem,
    CategoryPage,
    get_catalog_client,
)
from inventory.services.inventory_store import InventoryRecordStore, normalize_price
from inventory.services.crawl_job import CrawlJobPayload
from inventory.services.crawl_status import (
    Admission,
    AdmissionDecision,
    CrawlStatusTracker,
    SkipReason,
)
from inventory.services.category_crawler import CategoryCrawler, CrawlPageResult
from inventory.services.store_cache import StoreResultCache
from inventory.services.reasoning_client import (
    ReasoningClient,
    ReasoningMatch,
    get_reasoning_client,
)
from inventory.services.item_matcher import (
    Candidate,
    DesiredItem,
    ItemMatcher,
    ResolvedMatch,
    get_match_set,
)

__all__ = [
    "CatalogClient",
    "CatalogCategory",
    "CatalogItem",
    "CategoryPage",
    "get_catalog_client",
    "InventoryRecordStore",
    "normalize_price",
    "CrawlJobPayload",
    "Admission",
    "AdmissionDecision",
    "CrawlStatusTracker",
    "SkipReason",
    "CategoryCrawler",
    "CrawlPageResult",
    "StoreResultCache",
    "ReasoningClient",
    "ReasoningMatch",
    "get_reasoning_client",
    "Candidate",
    "DesiredItem",
    "ItemMatcher",
    "ResolvedMatch",
    "get_match_set",
]
