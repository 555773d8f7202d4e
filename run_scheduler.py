"""
Scheduler Runner - Scheduled Review Requests
============================================

Sends scheduled review-request SMS once their send time has passed.
Runs one dispatcher pass every SCHEDULER_INTERVAL_SECONDS (default 60).

    python run_scheduler.py          # loop until Ctrl+C
    python run_scheduler.py --once   # single pass, for system cron
"""

import argparse
import logging
import time

from myrevuhq.application.scheduler import ScheduledDispatcher
from myrevuhq.application.sms_sender import ReviewRequestSender
from myrevuhq.infrastructure.config import get_settings
from myrevuhq.infrastructure.persistence import init_database
from myrevuhq.infrastructure.sms import build_messaging_provider

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_dispatcher() -> ScheduledDispatcher:
    settings = get_settings()
    for issue in settings.validate():
        logger.warning(issue)

    db = init_database(settings.app.database_file)
    provider = build_messaging_provider(settings.twilio)
    sender = ReviewRequestSender(db, provider, settings.app)
    return ScheduledDispatcher(
        db,
        sender,
        batch_size=settings.app.scheduler_batch_size,
        max_workers=settings.app.scheduler_max_workers,
    )


def run_scheduler(once: bool = False):
    """Run the dispatcher loop."""
    dispatcher = build_dispatcher()
    interval = get_settings().app.scheduler_interval_seconds

    print("\n" + "=" * 60)
    print("   MyRevuHQ - Scheduled SMS Runner")
    print("=" * 60 + "\n")

    while True:
        try:
            report = dispatcher.run_once()
            if report.processed:
                print(
                    f"Processed {report.processed}: "
                    f"{report.successful} sent, {report.failed} failed"
                )
        except Exception as e:
            # A broken pass must not stop the loop
            logger.exception(f"[Scheduler] Pass failed: {e}")

        if once:
            return
        time.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="Send scheduled review-request SMS")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    args = parser.parse_args()

    try:
        run_scheduler(once=args.once)
    except KeyboardInterrupt:
        print("\nScheduler stopped.")


if __name__ == "__main__":
    main()
