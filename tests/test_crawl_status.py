"""
Tests for crawl admission control and run bookkeeping.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from django.utils import timezone

from inventory.exceptions import TriggerFailed
from inventory.models import CrawlStatus, CrawlVisit
from inventory.services.crawl_status import (
    Admission,
    AdmissionDecision,
    CrawlStatusTracker,
    SkipReason,
)


@pytest.fixture
def tracker():
    return CrawlStatusTracker(
        cooldown=timedelta(hours=24),
        stale_after=timedelta(hours=6),
        trigger=Mock(),
    )


@pytest.mark.django_db
class TestAdmit:
    def test_unknown_store_proceeds(self, tracker):
        assert tracker.admit("store-1").should_proceed

    def test_in_progress_store_is_skipped(self, tracker):
        tracker.begin("store-1")

        admission = tracker.admit("store-1")

        assert admission.decision == AdmissionDecision.SKIP
        assert admission.reason == SkipReason.IN_PROGRESS

    def test_skipped_until_complete(self, tracker):
        tracker.begin("store-1")
        assert tracker.admit("store-1").reason == SkipReason.IN_PROGRESS

        tracker.complete("store-1")
        assert tracker.admit("store-1").reason == SkipReason.RECENTLY_PROCESSED

    def test_cooldown_window(self, tracker):
        finished = timezone.now() - timedelta(hours=48)
        tracker.begin("store-1", now=finished - timedelta(minutes=5))
        tracker.complete("store-1", now=finished)

        at_23h = tracker.admit("store-1", now=finished + timedelta(hours=23))
        at_25h = tracker.admit("store-1", now=finished + timedelta(hours=25))

        assert at_23h.reason == SkipReason.RECENTLY_PROCESSED
        assert at_23h.last_processed == finished
        assert at_25h.should_proceed

    def test_stale_run_is_reclaimed(self, tracker):
        started = timezone.now() - timedelta(hours=7)
        tracker.begin("store-1", now=started)

        assert tracker.admit("store-1").should_proceed

    def test_recent_run_is_not_stale(self, tracker):
        tracker.begin("store-1", now=timezone.now() - timedelta(hours=5))

        assert tracker.admit("store-1").reason == SkipReason.IN_PROGRESS


@pytest.mark.django_db
class TestBeginComplete:
    def test_begin_opens_run(self, tracker):
        run_id = tracker.begin("store-1")

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.is_processing is True
        assert status.time_end is None
        assert status.time_start is not None
        assert status.run_id == run_id
        assert status.pending_jobs == 1
        assert status.jobs_enqueued == 1

    def test_begin_resets_counters(self, tracker):
        run_id = tracker.begin("store-1")
        tracker.job_enqueued(run_id, 3)
        tracker.job_finished(run_id, failed=True)
        tracker.complete("store-1")

        tracker.begin("store-1")

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.pending_jobs == 1
        assert status.jobs_failed == 0
        assert status.records_upserted == 0

    def test_complete_sets_time_end(self, tracker):
        tracker.begin("store-1")
        tracker.complete("store-1")

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.is_processing is False
        assert status.time_end is not None

    def test_one_row_per_store(self, tracker):
        tracker.begin("store-1")
        tracker.complete("store-1")
        tracker.begin("store-1")

        assert CrawlStatus.objects.filter(store_id="store-1").count() == 1


@pytest.mark.django_db
class TestRequestProcessing:
    def test_admitted_request_starts_trigger(self, tracker, store_location, store_address):
        admission = tracker.request_processing("store-1", store_location, store_address)

        assert admission.should_proceed
        tracker.trigger.start.assert_called_once()
        payload = tracker.trigger.start.call_args[0][0]
        assert payload.store_id == "store-1"
        assert payload.run_id == str(admission.run_id)
        assert payload.is_root
        assert payload.address["zipcode"] == "10005"

    def test_second_request_is_skipped(self, tracker, store_location, store_address):
        tracker.request_processing("store-1", store_location, store_address)

        admission = tracker.request_processing("store-1", store_location, store_address)

        assert admission.reason == SkipReason.IN_PROGRESS
        assert tracker.trigger.start.call_count == 1

    def test_trigger_failure_releases_lock(self, tracker, store_location, store_address):
        tracker.trigger.start.side_effect = TriggerFailed("starter down", status_code=502)

        with pytest.raises(TriggerFailed):
            tracker.request_processing("store-1", store_location, store_address)

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.is_processing is False
        assert status.time_end is None
        assert tracker.admit("store-1").should_proceed

    def test_trigger_failure_restores_previous_completion(
        self, tracker, store_location, store_address
    ):
        finished = timezone.now() - timedelta(hours=30)
        tracker.begin("store-1", now=finished - timedelta(hours=1))
        tracker.complete("store-1", now=finished)
        tracker.trigger.start.side_effect = TriggerFailed("starter down")

        with pytest.raises(TriggerFailed):
            tracker.request_processing("store-1", store_location, store_address)

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.is_processing is False
        assert status.time_end == finished

    def test_recently_processed_store_not_triggered(self, tracker, store_location, store_address):
        tracker.begin("store-1")
        tracker.complete("store-1")

        admission = tracker.request_processing("store-1", store_location, store_address)

        assert admission.reason == SkipReason.RECENTLY_PROCESSED
        tracker.trigger.start.assert_not_called()


@pytest.mark.django_db
class TestRunBookkeeping:
    def test_last_job_completes_run(self, tracker):
        run_id = tracker.begin("store-1")
        tracker.job_enqueued(run_id, 2)

        assert tracker.job_finished(run_id) is False
        assert tracker.job_finished(run_id) is False
        assert tracker.job_finished(run_id, records=5) is True

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.is_processing is False
        assert status.time_end is not None
        assert status.pending_jobs == 0
        assert status.jobs_enqueued == 3
        assert status.records_upserted == 5

    def test_failed_job_still_finishes(self, tracker):
        run_id = tracker.begin("store-1")

        assert tracker.job_finished(run_id, failed=True) is True

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.jobs_failed == 1
        assert status.is_processing is False

    def test_run_completes_only_once(self, tracker):
        run_id = tracker.begin("store-1")

        assert tracker.job_finished(run_id) is True
        assert tracker.job_finished(run_id) is False

    def test_jobs_of_old_run_do_not_touch_new_run(self, tracker):
        old_run = tracker.begin("store-1", now=timezone.now() - timedelta(hours=8))
        new_run = tracker.begin("store-1")

        assert tracker.job_finished(old_run) is False

        status = CrawlStatus.objects.get(store_id="store-1")
        assert status.run_id == new_run
        assert status.is_processing is True
        assert status.pending_jobs == 1

    def test_mark_visited_once_per_run(self, tracker):
        run_id = tracker.begin("store-1")

        assert tracker.mark_visited(run_id, "dairy", store_id="store-1", depth=1) is True
        assert tracker.mark_visited(run_id, "dairy", store_id="store-1", depth=1) is False
        assert CrawlVisit.objects.filter(run_id=run_id).count() == 1

    def test_completed_run_drops_its_visits(self, tracker):
        run_id = tracker.begin("store-1")
        tracker.job_enqueued(run_id, 1)
        tracker.mark_visited(run_id, "dairy", store_id="store-1", depth=1)

        assert tracker.job_finished(run_id) is False
        assert CrawlVisit.objects.filter(run_id=run_id).count() == 1

        assert tracker.job_finished(run_id) is True
        assert CrawlVisit.objects.filter(run_id=run_id).count() == 0

    def test_new_run_drops_visits_of_earlier_runs(self, tracker):
        stale = tracker.begin("store-1", now=timezone.now() - timedelta(hours=8))
        tracker.mark_visited(stale, "dairy", store_id="store-1", depth=1)
        other = tracker.begin("store-2")
        tracker.mark_visited(other, "dairy", store_id="store-2", depth=1)

        current = tracker.begin("store-1")

        assert not CrawlVisit.objects.filter(run_id=stale).exists()
        assert CrawlVisit.objects.filter(run_id=other).count() == 1
        assert tracker.mark_visited(current, "dairy", store_id="store-1", depth=1) is True

    def test_mark_visited_is_per_run(self, tracker):
        first = tracker.begin("store-1")
        tracker.complete("store-1")
        second = tracker.begin("store-1")

        assert tracker.mark_visited(first, "dairy") is True
        assert tracker.mark_visited(second, "dairy") is True


class TestAdmission:
    def test_to_dict(self):
        admission = Admission.skip(SkipReason.IN_PROGRESS)

        assert admission.to_dict() == {
            "decision": "skip",
            "reason": "in_progress",
            "last_processed": None,
            "run_id": None,
        }

    def test_proceed(self):
        assert Admission.proceed().should_proceed
        assert not Admission.skip(SkipReason.RECENTLY_PROCESSED).should_proceed
