"""
Django admin configuration for inventory models.

Read-mostly views of crawled inventory, crawl runs, cached stores and
match sets.
"""

from django.contrib import admin
from django.utils.html import format_html

from inventory.models import CrawlStatus, CrawlVisit, InventoryRecord, MatchSet, StoreSummary


@admin.register(InventoryRecord)
class InventoryRecordAdmin(admin.ModelAdmin):
    list_display = ["name", "store_id", "product_id", "price", "unit_size", "is_available", "last_crawled_at"]
    list_filter = ["is_available", ("last_crawled_at", admin.DateFieldListFilter)]
    search_fields = ["name", "store_id", "product_id", "upc"]
    readonly_fields = ["id", "first_seen_at", "last_crawled_at"]
    ordering = ["store_id", "name"]


@admin.register(CrawlStatus)
class CrawlStatusAdmin(admin.ModelAdmin):
    """
    Admin interface for per-store crawl state.

    Clearing is_processing here releases a stuck store by hand.
    """

    list_display = [
        "store_id",
        "state_badge",
        "time_start",
        "time_end",
        "jobs_enqueued",
        "pending_jobs",
        "jobs_failed",
        "records_upserted",
    ]
    list_filter = ["is_processing"]
    search_fields = ["store_id", "run_id"]
    readonly_fields = ["id", "run_id", "updated_at"]

    def state_badge(self, obj):
        if obj.is_processing:
            return format_html('<span style="color: {};">{}</span>', "#d97706", "in progress")
        return format_html('<span style="color: {};">{}</span>', "#059669", "idle")

    state_badge.short_description = "State"


@admin.register(CrawlVisit)
class CrawlVisitAdmin(admin.ModelAdmin):
    list_display = ["store_id", "subcategory_id", "depth", "run_id", "created_at"]
    search_fields = ["store_id", "subcategory_id", "run_id"]


@admin.register(StoreSummary)
class StoreSummaryAdmin(admin.ModelAdmin):
    list_display = ["name", "store_type", "city", "state", "miles", "is_open", "last_updated"]
    list_filter = ["store_type", "is_open", "state"]
    search_fields = ["name", "store_id", "city", "zip_code"]


@admin.register(MatchSet)
class MatchSetAdmin(admin.ModelAdmin):
    list_display = ["influencer_id", "store_id", "match_count", "updated_at"]
    search_fields = ["influencer_id", "store_id"]
    readonly_fields = ["id", "created_at", "updated_at"]

    def match_count(self, obj):
        return len(obj.matches or [])

    match_count.short_description = "Matches"
