"""
Django models for the Grocery Inventory Service.

Models: InventoryRecord, CrawlStatus, CrawlVisit, StoreSummary, MatchSet

Every table that is written by concurrent workers carries a unique key and
is only ever written by upsert on that key.
"""

import uuid
from datetime import timedelta

from django.db import models
from django.utils import timezone


class InventoryRecord(models.Model):
    """
    One product offered by one store, normalized from the catalog provider.

    Created and updated by the category crawler; re-crawling the same product
    updates the row in place. Never deleted: stale rows are tolerated.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store_id = models.CharField(max_length=100, help_text="Catalog provider store id")
    product_id = models.CharField(max_length=100, help_text="Provider product id, unique per store")

    name = models.CharField(max_length=500)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Price in major currency units",
    )
    unit_size = models.CharField(max_length=50, blank=True, default="")
    unit_of_measurement = models.CharField(max_length=50, blank=True, default="")
    description = models.TextField(blank=True, default="")
    image_url = models.URLField(max_length=2000, blank=True, default="")
    is_available = models.BooleanField(default=True)
    upc = models.CharField(max_length=32, blank=True, null=True)

    first_seen_at = models.DateTimeField(default=timezone.now)
    last_crawled_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "inventory_records"
        ordering = ["store_id", "first_seen_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["store_id", "product_id"],
                name="unique_store_product",
            ),
        ]
        indexes = [
            models.Index(fields=["store_id", "name"], name="inventory_store_name_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.store_id}/{self.product_id})"


class CrawlStatus(models.Model):
    """
    Per-store crawl admission state plus bookkeeping for the current run.

    idle -> in_progress -> idle (time_end set). One row per store, never deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store_id = models.CharField(max_length=100, unique=True)

    is_processing = models.BooleanField(default=False)
    time_start = models.DateTimeField(null=True, blank=True)
    time_end = models.DateTimeField(null=True, blank=True)

    # Current (or last) crawl run
    run_id = models.UUIDField(null=True, blank=True, db_index=True)
    pending_jobs = models.IntegerField(default=0)
    jobs_enqueued = models.IntegerField(default=0)
    jobs_failed = models.IntegerField(default=0)
    records_upserted = models.IntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "crawl_status"
        verbose_name_plural = "Crawl statuses"

    def __str__(self):
        state = "in_progress" if self.is_processing else "idle"
        return f"{self.store_id} ({state})"

    def is_stale(self, stale_after: timedelta, now=None) -> bool:
        """True if an in-progress run started longer ago than stale_after."""
        if not self.is_processing or self.time_start is None:
            return False
        now = now or timezone.now()
        return now - self.time_start > stale_after


class CrawlVisit(models.Model):
    """
    A subcategory claimed by a crawl run.

    The unique key is the per-run visited set: a node is enqueued at most once.
    """

    run_id = models.UUIDField()
    store_id = models.CharField(max_length=100)
    subcategory_id = models.CharField(max_length=200)
    depth = models.IntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "crawl_visits"
        constraints = [
            models.UniqueConstraint(
                fields=["run_id", "subcategory_id"],
                name="unique_run_subcategory",
            ),
        ]

    def __str__(self):
        return f"{self.store_id}:{self.subcategory_id} (run {self.run_id})"


class StoreSummary(models.Model):
    """
    A store returned by a proximity search, cached for reuse.

    Rows older than the freshness window are ignored on read, never deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store_id = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=300)
    store_type = models.CharField(max_length=50, blank=True, default="")

    # Address
    street_num = models.CharField(max_length=50, blank=True, default="")
    street_name = models.CharField(max_length=200, blank=True, default="")
    street_addr = models.CharField(max_length=300, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state = models.CharField(max_length=50, blank=True, default="")
    zip_code = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=50, blank=True, default="")
    latitude = models.FloatField()
    longitude = models.FloatField()

    is_open = models.BooleanField(default=False)
    miles = models.FloatField(default=0.0, help_text="Distance from the query point")
    last_updated = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "store_summaries"
        ordering = ["miles"]
        indexes = [
            models.Index(fields=["latitude", "longitude"], name="store_summary_latlong_idx"),
            models.Index(fields=["last_updated"], name="store_summary_updated_idx"),
        ]
        verbose_name_plural = "Store summaries"

    def __str__(self):
        return f"{self.name} ({self.city})"


class MatchSet(models.Model):
    """
    Resolved shopping-list items for one requester at one store.

    Replaced wholesale each time the matcher runs for the pair.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store_id = models.CharField(max_length=100)
    influencer_id = models.CharField(max_length=100)
    matches = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered list of resolved items",
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "match_sets"
        constraints = [
            models.UniqueConstraint(
                fields=["store_id", "influencer_id"],
                name="unique_store_influencer",
            ),
        ]

    def __str__(self):
        return f"{self.influencer_id} @ {self.store_id} ({len(self.matches)} matches)"
