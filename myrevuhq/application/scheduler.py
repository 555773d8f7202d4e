"""
Scheduled SMS Dispatcher
========================

One polling pass over customers whose scheduled send time has passed:

    1. Select up to `batch_size` rows with sms_status='scheduled' and
       scheduled_send_at <= now, oldest first.
    2. Send one review request per row through ReviewRequestSender and
       wait for every send to settle. Owners run concurrently; one owner's
       rows run in order, so each quota check sees the previous send.
    3. A row whose send fails goes back to 'pending' with its schedule
       cleared, so the owner can send it by hand. There is no retry.

Run it from cron (POST /api/cron/send-scheduled-sms) or in a loop
(run_scheduler.py). Overlapping passes are not locked against each other.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from myrevuhq.domain.models import Customer, to_iso, utc_now
from myrevuhq.infrastructure.persistence import Database

from .sms_sender import ReviewRequestSender

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass
class DispatchResult:
    customer_id: str
    success: bool
    error: Optional[str] = None
    message_sid: Optional[str] = None


@dataclass
class DispatchReport:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: List[DispatchResult] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.processed == 0:
            return "No scheduled SMS to send"
        return "Scheduled SMS processing complete"

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "results": [
                {"customer_id": r.customer_id, "success": r.success, "error": r.error}
                for r in self.results
            ],
        }


class ScheduledDispatcher:
    """
    USAGE:
        dispatcher = ScheduledDispatcher(db, sender)
        report = dispatcher.run_once()
        print(report.successful, report.failed)
    """

    def __init__(
        self,
        db: Database,
        sender: ReviewRequestSender,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 10,
    ):
        self._db = db
        self._sender = sender
        self._batch_size = batch_size
        self._max_workers = max(1, max_workers)

    def run_once(self, now: Optional[datetime] = None) -> DispatchReport:
        """Process one batch of due scheduled customers."""
        now_iso = to_iso(now or utc_now())
        due = self._db.get_due_scheduled_customers(now_iso, limit=self._batch_size)

        report = DispatchReport(processed=len(due))
        if not due:
            logger.debug("[Scheduler] No scheduled SMS to send")
            return report

        by_owner: Dict[str, List[Customer]] = {}
        for customer in due:
            by_owner.setdefault(customer.user_id, []).append(customer)

        logger.info(
            f"[Scheduler] Sending {len(due)} scheduled SMS for {len(by_owner)} owner(s)"
        )

        outcomes: Dict[str, DispatchResult] = {}
        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(by_owner))) as pool:
            for results in pool.map(self._dispatch_owner, by_owner.values()):
                outcomes.update((r.customer_id, r) for r in results)
        report.results = [outcomes[customer.id] for customer in due]

        report.successful = sum(1 for r in report.results if r.success)
        report.failed = report.processed - report.successful

        logger.info(
            f"[Scheduler] Complete: {report.successful} sent, {report.failed} failed"
        )
        return report

    def _dispatch_owner(self, customers: List[Customer]) -> List[DispatchResult]:
        return [self._dispatch(customer) for customer in customers]

    def _dispatch(self, customer: Customer) -> DispatchResult:
        """Send to one customer. Never raises; failures are reported."""
        try:
            result = self._sender.send(customer.user_id, customer.id)
            return DispatchResult(customer.id, True, message_sid=result.message_sid)
        except Exception as e:
            logger.warning(f"[Scheduler] Send failed for customer {customer.id}: {e}")
            try:
                self._db.reset_schedule(customer.id)
            except Exception as reset_error:
                logger.error(
                    f"[Scheduler] Could not reset schedule for customer {customer.id}: {reset_error}"
                )
            return DispatchResult(customer.id, False, error=str(e))
