"""
Tests for inventory models and their unique keys.
"""

import uuid
from datetime import timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone

from inventory.models import CrawlStatus, CrawlVisit, InventoryRecord, MatchSet


@pytest.mark.django_db
class TestUniqueKeys:
    def test_one_record_per_store_product(self):
        InventoryRecord.objects.create(store_id="store-1", product_id="p-1", name="Milk")

        with pytest.raises(IntegrityError):
            InventoryRecord.objects.create(store_id="store-1", product_id="p-1", name="Milk 2")

    def test_same_product_in_two_stores(self):
        InventoryRecord.objects.create(store_id="store-1", product_id="p-1", name="Milk")
        InventoryRecord.objects.create(store_id="store-2", product_id="p-1", name="Milk")

        assert InventoryRecord.objects.count() == 2

    def test_subcategory_visited_once_per_run(self):
        run_id = uuid.uuid4()
        CrawlVisit.objects.create(run_id=run_id, store_id="store-1", subcategory_id="dairy")

        with pytest.raises(IntegrityError):
            CrawlVisit.objects.create(run_id=run_id, store_id="store-1", subcategory_id="dairy")

    def test_one_match_set_per_pair(self):
        MatchSet.objects.create(store_id="store-1", influencer_id="inf-1")

        with pytest.raises(IntegrityError):
            MatchSet.objects.create(store_id="store-1", influencer_id="inf-1")


class TestCrawlStatusStaleness:
    def test_running_past_window_is_stale(self):
        now = timezone.now()
        status = CrawlStatus(store_id="s", is_processing=True, time_start=now - timedelta(hours=7))

        assert status.is_stale(timedelta(hours=6), now=now)

    def test_recent_run_is_not_stale(self):
        now = timezone.now()
        status = CrawlStatus(store_id="s", is_processing=True, time_start=now - timedelta(hours=1))

        assert not status.is_stale(timedelta(hours=6), now=now)

    def test_idle_is_never_stale(self):
        status = CrawlStatus(store_id="s", is_processing=False, time_start=timezone.now() - timedelta(days=3))

        assert not status.is_stale(timedelta(hours=6))

    def test_str(self):
        assert str(CrawlStatus(store_id="store-1", is_processing=True)) == "store-1 (in_progress)"
