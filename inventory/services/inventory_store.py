"""
Inventory Record Store - normalized product persistence keyed by
(store_id, product_id).

All writes are bulk upserts on the unique key so that concurrent category
jobs for the same store can never produce duplicate rows.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from django.utils import timezone

from inventory.models import InventoryRecord
from inventory.services.catalog_client import CatalogItem

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Columns refreshed when an existing (store_id, product_id) row is re-crawled.
# first_seen_at keeps its value from the first insert.
UPSERT_UPDATE_FIELDS = [
    "name",
    "price",
    "unit_size",
    "unit_of_measurement",
    "description",
    "image_url",
    "is_available",
    "upc",
    "last_crawled_at",
]


def normalize_price(price_minor) -> Optional[Decimal]:
    """
    Convert a provider price in minor units to major units.

    1050 -> Decimal("10.50"). Missing or non-numeric prices become None.
    """
    if price_minor is None or price_minor == "":
        return None
    try:
        return (Decimal(str(price_minor)) / 100).quantize(CENTS)
    except (InvalidOperation, ValueError):
        logger.warning(f"Ignoring non-numeric price: {price_minor!r}")
        return None


def normalize_item(store_id: str, item: CatalogItem, now=None) -> InventoryRecord:
    """Build an unsaved InventoryRecord from a provider item."""
    now = now or timezone.now()
    return InventoryRecord(
        store_id=store_id,
        product_id=item.product_id,
        name=item.name[:500],
        price=normalize_price(item.price),
        unit_size=item.unit_size[:50],
        unit_of_measurement=item.unit_of_measurement[:50],
        description=item.description,
        image_url=item.image[:2000],
        is_available=item.is_available,
        upc=item.upc,
        first_seen_at=now,
        last_crawled_at=now,
    )


class InventoryRecordStore:
    """
    Persistence for normalized inventory records.

    Usage:
        store = InventoryRecordStore()
        store.upsert_records(records)
        store.search("store-1", "milk")
    """

    def upsert_records(self, records: List[InventoryRecord]) -> int:
        """
        Insert or update records on (store_id, product_id).

        Records are deduplicated by key first (last one wins) so that a single
        statement never touches the same row twice.

        Returns:
            Number of distinct records written
        """
        if not records:
            return 0

        unique: Dict[tuple, InventoryRecord] = {}
        for record in records:
            unique[(record.store_id, record.product_id)] = record

        InventoryRecord.objects.bulk_create(
            list(unique.values()),
            update_conflicts=True,
            unique_fields=["store_id", "product_id"],
            update_fields=UPSERT_UPDATE_FIELDS,
        )
        logger.debug(f"Upserted {len(unique)} inventory records")
        return len(unique)

    def upsert_items(self, store_id: str, items: List[CatalogItem]) -> int:
        """Normalize provider items for one store and upsert them."""
        now = timezone.now()
        return self.upsert_records([normalize_item(store_id, item, now) for item in items])

    def search(self, store_id: str, query: str = "", limit: int = 100) -> List[InventoryRecord]:
        """Case-insensitive name search within one store, first `limit` records."""
        queryset = InventoryRecord.objects.filter(store_id=store_id)
        if query:
            queryset = queryset.filter(name__icontains=query)
        return list(queryset.order_by("first_seen_at", "id")[:limit])

    def count(self, store_id: str) -> int:
        return InventoryRecord.objects.filter(store_id=store_id).count()
