"""
Tests for Celery tasks (eager mode, see config.settings.test).
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from inventory.models import CrawlStatus, CrawlVisit, InventoryRecord, MatchSet
from inventory.services.crawl_job import CrawlJobPayload
from inventory.services.crawl_status import CrawlStatusTracker, SkipReason
from inventory.services.crawl_trigger import QueueCrawlTrigger
from inventory.tasks import crawl_category, enqueue_match_job, resolve_matches


@pytest.mark.django_db
class TestCrawlCategoryTask:
    def test_full_run_through_queue(self, tree_catalog, store_location, store_address):
        catalog = tree_catalog(depth=2, branching=2, items_per_leaf=2)
        tracker = CrawlStatusTracker(trigger=QueueCrawlTrigger())

        with patch("inventory.tasks.get_catalog_client", return_value=catalog):
            admission = tracker.request_processing("store-1", store_location, store_address)

        assert admission.should_proceed
        assert len(catalog.calls) == 7
        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.is_processing is False
        assert status.time_end is not None
        assert status.jobs_enqueued == 7
        assert status.jobs_failed == 0
        assert status.records_upserted == 8
        assert InventoryRecord.objects.filter(store_id="store-1").count() == 8
        assert not CrawlVisit.objects.filter(store_id="store-1").exists()

    def test_recrawl_within_cooldown_is_skipped(self, tree_catalog, store_location, store_address):
        catalog = tree_catalog(depth=1, branching=2)
        tracker = CrawlStatusTracker(trigger=QueueCrawlTrigger())

        with patch("inventory.tasks.get_catalog_client", return_value=catalog):
            tracker.request_processing("store-1", store_location, store_address)
            second = tracker.request_processing("store-1", store_location, store_address)

        assert second.reason == SkipReason.RECENTLY_PROCESSED
        assert len(catalog.calls) == 3

    def test_failed_job_reported_and_counted(self, tree_catalog, store_location, store_address):
        catalog = tree_catalog(depth=2, branching=2, failing={"n-1"})
        tracker = CrawlStatusTracker(trigger=QueueCrawlTrigger())

        with patch("inventory.tasks.get_catalog_client", return_value=catalog), patch(
            "inventory.tasks.capture_job_failure"
        ) as capture:
            tracker.request_processing("store-1", store_location, store_address)

        capture.assert_called_once()
        assert capture.call_args[1]["store_id"] == "store-1"
        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.jobs_failed == 1
        assert status.is_processing is False
        assert InventoryRecord.objects.filter(store_id="store-1").count() == 2

    def test_single_job_result(self, tree_catalog):
        tracker = CrawlStatusTracker()
        run_id = tracker.begin("store-1")
        payload = CrawlJobPayload.root("store-1", run_id, {"latitude": 1, "longitude": 2}, {})

        with patch("inventory.tasks.get_catalog_client", return_value=tree_catalog(depth=0)):
            result = crawl_category.apply(args=[payload.to_dict()]).get()

        assert result["status"] == "completed"
        assert result["records_upserted"] == 1
        assert result["run_completed"] is True

    def test_missing_provider_key_fails_job(self):
        tracker = CrawlStatusTracker()
        run_id = tracker.begin("store-1")
        payload = CrawlJobPayload.root("store-1", run_id, {}, {})

        with patch("inventory.tasks.get_catalog_client", side_effect=ValueError("no key")):
            result = crawl_category.apply(args=[payload.to_dict()]).get()

        assert result["status"] == "failed"
        assert result["run_completed"] is True
        assert CrawlStatus.objects.get(store_id="store-1").jobs_failed == 1


@pytest.mark.django_db
class TestResolveMatchesTask:
    def test_resolves_and_stores(self):
        InventoryRecord.objects.create(
            store_id="store-1", product_id="p-1", name="Bananas", price=Decimal("0.59")
        )

        result = resolve_matches.apply(args=["store-1", "influencer-1", [{"name": "bananas"}]]).get()

        assert result["status"] == "completed"
        assert result["matches"] == 1
        match_set = MatchSet.objects.get(store_id="store-1", influencer_id="influencer-1")
        assert match_set.matches[0]["resolved_name"] == "Bananas"

    def test_enqueue_match_job_dispatches(self):
        InventoryRecord.objects.create(store_id="store-1", product_id="p-1", name="Bananas")

        enqueue_match_job("store-1", "influencer-1", [{"name": "bananas", "quantity": 6}])

        match_set = MatchSet.objects.get(store_id="store-1", influencer_id="influencer-1")
        assert match_set.matches[0]["adjusted_quantity"] == 6


class TestEnqueueMatchJobValidation:
    @pytest.mark.parametrize(
        "store_id,influencer_id,items",
        [
            ("", "influencer-1", [{"name": "milk"}]),
            ("store-1", "", [{"name": "milk"}]),
            ("store-1", "influencer-1", []),
            ("store-1", "influencer-1", None),
            ("store-1", "influencer-1", {"name": "milk"}),
        ],
    )
    def test_rejects_missing_inputs(self, store_id, influencer_id, items):
        with patch("inventory.tasks.resolve_matches") as task:
            with pytest.raises(ValueError):
                enqueue_match_job(store_id, influencer_id, items)

        task.apply_async.assert_not_called()
