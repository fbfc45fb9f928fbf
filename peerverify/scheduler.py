"""
Scheduler for periodic finalization of assessments.

This module provides a background scheduler that periodically finalizes
every open assessment whose competency has collected its required number
of assessors, settling the assessors' reputation as it goes.
"""

import asyncio
import logging
import time
from datetime import datetime, UTC
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from peerverify.config import get_settings
from peerverify.database import SessionLocal
from peerverify.engine import AssessmentEngine


logger = logging.getLogger(__name__)

settings = get_settings()


def finalize_ready_assessments(db: Session) -> dict:
    """
    Finalize every assessment that is ready.

    Refused finalizations are collected as errors; they do not stop the
    remaining ones.

    Returns:
        Dictionary with the run summary
    """
    start_time = time.time()
    engine = AssessmentEngine(db)

    finalized = 0
    verified = 0
    errors = []

    for competency_id, subject in engine.ready_for_finalization():
        result = engine.finalize(competency_id, subject)
        if not result.ok:
            errors.append(f"{competency_id}/{subject}: {result.error.value}")
            continue
        finalized += 1
        if result.value.verified:
            verified += 1

    duration = time.time() - start_time
    logger.info(
        f"Finalization complete: {finalized} assessments "
        f"({verified} verified) in {duration:.2f}s"
    )

    return {
        "success": len(errors) == 0,
        "finalized": finalized,
        "verified": verified,
        "rejected": finalized - verified,
        "errors": errors,
        "duration_seconds": duration,
        "finalized_at": datetime.now(UTC).isoformat(),
    }


class FinalizationScheduler:
    """
    Scheduler for periodic finalization runs.

    Finalizes ready assessments at configured intervals so subjects do
    not depend on someone calling finalize by hand.
    """

    def __init__(
        self,
        interval_minutes: Optional[int] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        """
        Initialize the scheduler.

        Args:
            interval_minutes: Finalization interval (default from settings)
            session_factory: Creates the session each run uses
        """
        self.interval_minutes = interval_minutes or settings.finalize_interval_minutes
        self.session_factory = session_factory
        self.scheduler = AsyncIOScheduler()
        self._is_running = False
        self._last_run: Optional[datetime] = None
        self._last_result: Optional[dict] = None
        self._runs = 0
        self._total_finalized = 0
        self._total_verified = 0

    async def run_finalization(self):
        """
        Run a finalization iteration.

        This is called by the scheduler at each interval.
        """
        if self._is_running:
            logger.warning("Finalization already in progress, skipping this iteration")
            return

        self._is_running = True
        start_time = datetime.now(UTC)

        try:
            logger.info(f"Starting scheduled finalization run at {start_time.isoformat()}")

            with self.session_factory() as db:
                result = finalize_ready_assessments(db)

                self._last_run = datetime.now(UTC)
                self._last_result = result
                self._runs += 1
                self._total_finalized += result["finalized"]
                self._total_verified += result["verified"]

        except Exception as e:
            logger.exception(f"Error in scheduled finalization: {e}")
            self._last_result = {"success": False, "error": str(e)}
        finally:
            self._is_running = False

    def start(self):
        """Start the scheduler."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.add_job(
            self.run_finalization,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="assessment_finalization",
            name="Assessment Finalization",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
        )

        self.scheduler.start()
        logger.info(
            f"Finalization scheduler started - running every {self.interval_minutes} minutes"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Finalization scheduler stopped")

    def get_status(self) -> dict:
        """Get scheduler status and assessment totals."""
        return {
            "running": self.scheduler.running,
            "interval_minutes": self.interval_minutes,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_result": self._last_result,
            "is_finalizing": self._is_running,
            "next_run": self._get_next_run_time(),
            "runs": self._runs,
            "total_finalized": self._total_finalized,
            "total_verified": self._total_verified,
            "total_rejected": self._total_finalized - self._total_verified,
            "pending": self._count_pending(),
        }

    def _count_pending(self) -> Optional[int]:
        """Number of assessments the next run would finalize, None if unknown."""
        try:
            with self.session_factory() as db:
                return len(AssessmentEngine(db).ready_for_finalization())
        except Exception as e:
            logger.warning(f"Could not count pending assessments: {e}")
            return None

    def _get_next_run_time(self) -> Optional[str]:
        """Get the next scheduled run time."""
        if not self.scheduler.running:
            return None

        job = self.scheduler.get_job("assessment_finalization")
        if job and job.next_run_time:
            return job.next_run_time.isoformat()
        return None


# Global scheduler instance
_scheduler: Optional[FinalizationScheduler] = None


def get_scheduler() -> FinalizationScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = FinalizationScheduler()
    return _scheduler


def start_scheduler():
    """Start the global scheduler."""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop()
        _scheduler = None


# CLI entry point for running scheduler standalone
if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Assessment Finalization Scheduler")
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Finalization interval in minutes (default from settings)"
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Finalize ready assessments once and exit"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.run_once:
        with SessionLocal() as db:
            result = finalize_ready_assessments(db)
            print(f"Finalization complete: {result}")
    else:
        scheduler = FinalizationScheduler(interval_minutes=args.interval)

        async def main():
            scheduler.start()
            await asyncio.Event().wait()

        try:
            asyncio.run(main())
        except KeyboardInterrupt:
            scheduler.stop()
            print("\nScheduler stopped")
