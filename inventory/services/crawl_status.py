"""
Crawl Status Tracker - per-store admission control for inventory crawls.

A store is crawled at most once at a time and at most once per cooldown
window. Admission rejections are returned as Admission values, never raised.

Each admitted crawl opens a run (run_id). Jobs of the run are counted with
atomic F() updates; the job that brings the pending counter to zero closes
the run. An in-progress run older than INVENTORY_CRAWL_STALE_AFTER_HOURS is
treated as abandoned and may be replaced.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from inventory.exceptions import TriggerFailed
from inventory.models import CrawlStatus, CrawlVisit
from inventory.services.crawl_job import CrawlJobPayload

logger = logging.getLogger(__name__)

# Fields captured before begin() so that release() can restore them
RUN_STATE_FIELDS = (
    "is_processing",
    "time_start",
    "time_end",
    "run_id",
    "pending_jobs",
    "jobs_enqueued",
    "jobs_failed",
    "records_upserted",
)


class AdmissionDecision(str, Enum):
    PROCEED = "proceed"
    SKIP = "skip"


class SkipReason(str, Enum):
    IN_PROGRESS = "in_progress"
    RECENTLY_PROCESSED = "recently_processed"


@dataclass(frozen=True)
class Admission:
    """Outcome of an admission check."""

    decision: AdmissionDecision
    reason: Optional[SkipReason] = None
    last_processed: Optional[datetime] = None
    run_id: Optional[uuid.UUID] = None

    @classmethod
    def proceed(cls, run_id: uuid.UUID = None) -> "Admission":
        return cls(decision=AdmissionDecision.PROCEED, run_id=run_id)

    @classmethod
    def skip(cls, reason: SkipReason, last_processed: datetime = None) -> "Admission":
        return cls(
            decision=AdmissionDecision.SKIP,
            reason=reason,
            last_processed=last_processed,
        )

    @property
    def should_proceed(self) -> bool:
        return self.decision == AdmissionDecision.PROCEED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "reason": self.reason.value if self.reason else None,
            "last_processed": self.last_processed.isoformat() if self.last_processed else None,
            "run_id": str(self.run_id) if self.run_id else None,
        }


class CrawlStatusTracker:
    """
    Admission control and run bookkeeping backed by CrawlStatus/CrawlVisit.

    Usage:
        tracker = CrawlStatusTracker()
        admission = tracker.request_processing("store-1", location, address)
        if admission.should_proceed:
            ...
    """

    def __init__(
        self,
        cooldown: timedelta = None,
        stale_after: timedelta = None,
        trigger=None,
    ):
        """
        Args:
            cooldown: Minimum time between completed crawls of one store
            stale_after: Age after which an in-progress run is abandoned
            trigger: Object with start(payload); built from settings when omitted
        """
        self.cooldown = cooldown or timedelta(
            hours=getattr(settings, "INVENTORY_CRAWL_COOLDOWN_HOURS", 24)
        )
        self.stale_after = stale_after or timedelta(
            hours=getattr(settings, "INVENTORY_CRAWL_STALE_AFTER_HOURS", 6)
        )
        self._trigger = trigger

    @property
    def trigger(self):
        if self._trigger is None:
            from inventory.services.crawl_trigger import get_crawl_trigger

            self._trigger = get_crawl_trigger()
        return self._trigger

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def admit(self, store_id: str, now: datetime = None) -> Admission:
        """Decide whether a crawl of store_id may start now."""
        status = CrawlStatus.objects.filter(store_id=store_id).first()
        return self._evaluate(status, now or timezone.now())

    def _evaluate(self, status: Optional[CrawlStatus], now: datetime) -> Admission:
        if status is None:
            return Admission.proceed()

        if status.is_processing:
            if status.is_stale(self.stale_after, now):
                logger.warning(
                    f"Reclaiming stale crawl for store {status.store_id} "
                    f"(started {status.time_start.isoformat()})"
                )
                return Admission.proceed()
            return Admission.skip(SkipReason.IN_PROGRESS)

        if status.time_end and now - status.time_end < self.cooldown:
            return Admission.skip(SkipReason.RECENTLY_PROCESSED, last_processed=status.time_end)

        return Admission.proceed()

    def begin(self, store_id: str, now: datetime = None) -> uuid.UUID:
        """Mark store_id as processing and open a new run. Returns the run id."""
        admission, _ = self._open_run(store_id, now or timezone.now(), recheck=False)
        return admission.run_id

    def _open_run(
        self, store_id: str, now: datetime, recheck: bool
    ) -> Tuple[Admission, Optional[Dict[str, Any]]]:
        """
        Lock the status row, optionally re-check admission, and open a run.

        Returns:
            (admission, previous state) - previous is None when skipped
        """
        with transaction.atomic():
            status, _ = CrawlStatus.objects.select_for_update().get_or_create(store_id=store_id)

            if recheck:
                admission = self._evaluate(status, now)
                if not admission.should_proceed:
                    return admission, None

            previous = {name: getattr(status, name) for name in RUN_STATE_FIELDS}
            run_id = uuid.uuid4()

            status.is_processing = True
            status.time_start = now
            status.time_end = None
            status.run_id = run_id
            # The root job is pending from the start
            status.pending_jobs = 1
            status.jobs_enqueued = 1
            status.jobs_failed = 0
            status.records_upserted = 0
            status.save()
            # Visits of earlier runs (stale or released) are no longer needed
            CrawlVisit.objects.filter(store_id=store_id).exclude(run_id=run_id).delete()

        logger.info(f"Opened crawl run {run_id} for store {store_id}")
        return Admission.proceed(run_id), previous

    def complete(self, store_id: str, now: datetime = None) -> None:
        """Mark store_id idle and start its cooldown."""
        CrawlStatus.objects.update_or_create(
            store_id=store_id,
            defaults={"is_processing": False, "time_end": now or timezone.now()},
        )
        logger.info(f"Crawl complete for store {store_id}")

    def release(self, store_id: str, previous: Dict[str, Any], run_id: uuid.UUID = None) -> None:
        """
        Restore the state captured before begin().

        Used when the trigger fails: the store is unlocked and no cooldown
        is started. When run_id is given, a newer run is left untouched.
        """
        queryset = CrawlStatus.objects.filter(store_id=store_id)
        if run_id is not None:
            queryset = queryset.filter(run_id=run_id)
        restored = queryset.update(**previous)
        logger.info(f"Released crawl lock for store {store_id} ({restored} row(s) restored)")

    def request_processing(
        self,
        store_id: str,
        location: Dict[str, Any],
        address: Dict[str, Any],
    ) -> Admission:
        """
        Full admission flow: admit, begin, trigger.

        Raises:
            TriggerFailed: If the trigger could not be delivered. The
                store's state is restored before raising.
        """
        admission = self.admit(store_id)
        if not admission.should_proceed:
            logger.info(f"Skipping inventory processing for {store_id}: {admission.reason.value}")
            return admission

        admission, previous = self._open_run(store_id, timezone.now(), recheck=True)
        if not admission.should_proceed:
            logger.info(f"Skipping inventory processing for {store_id}: {admission.reason.value}")
            return admission

        payload = CrawlJobPayload.root(store_id, admission.run_id, location, address)
        try:
            self.trigger.start(payload)
        except TriggerFailed:
            logger.error(f"Inventory trigger failed for store {store_id}, releasing lock")
            self.release(store_id, previous, run_id=admission.run_id)
            raise

        return admission

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    def job_enqueued(self, run_id, count: int = 1) -> None:
        """Count child jobs before they are enqueued."""
        if count <= 0:
            return
        CrawlStatus.objects.filter(run_id=run_id).update(
            pending_jobs=F("pending_jobs") + count,
            jobs_enqueued=F("jobs_enqueued") + count,
        )

    def job_finished(self, run_id, failed: bool = False, records: int = 0) -> bool:
        """
        Count a finished (or finally failed) job.

        Returns:
            True if this call completed the run
        """
        updates = {
            "pending_jobs": F("pending_jobs") - 1,
            "records_upserted": F("records_upserted") + records,
        }
        if failed:
            updates["jobs_failed"] = F("jobs_failed") + 1
        CrawlStatus.objects.filter(run_id=run_id).update(**updates)

        # Conditional update: only one finisher can flip is_processing
        completed = CrawlStatus.objects.filter(
            run_id=run_id,
            pending_jobs__lte=0,
            is_processing=True,
        ).update(is_processing=False, time_end=timezone.now())

        if completed:
            CrawlVisit.objects.filter(run_id=run_id).delete()
            status = CrawlStatus.objects.filter(run_id=run_id).first()
            if status is not None:
                logger.info(
                    f"Crawl run {run_id} for store {status.store_id} finished: "
                    f"{status.jobs_enqueued} jobs, {status.jobs_failed} failed, "
                    f"{status.records_upserted} records"
                )
        return bool(completed)

    def mark_visited(self, run_id, subcategory_id: str, store_id: str = "", depth: int = 0) -> bool:
        """
        Claim a category node for a run.

        Returns:
            False if the node was already claimed in this run
        """
        try:
            with transaction.atomic():
                CrawlVisit.objects.create(
                    run_id=run_id,
                    store_id=store_id,
                    subcategory_id=subcategory_id,
                    depth=depth,
                )
        except IntegrityError:
            return False
        return True

    def get_status(self, store_id: str) -> Optional[CrawlStatus]:
        return CrawlStatus.objects.filter(store_id=store_id).first()
