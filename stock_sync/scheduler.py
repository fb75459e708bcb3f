"""Background scheduler for periodic synchronization.

Supports two modes:
  - **Standalone** (``stock-sync run`` / ``python -m stock_sync.scheduler``):
    runs a ``BlockingScheduler`` as the whole service process.
  - **Embedded** (``create_background_scheduler()``): returns a
    ``BackgroundScheduler`` that the status server starts in its
    ``lifespan`` handler.
"""

import os
import sys
import signal
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .services.reconciler import StockReconciler
from .utils.config import get_config
from .utils.exceptions import ConnectivityError, TransportError
from .utils.logger import flush_handlers, get_sync_logger, get_scheduler_logger


def exit_immediately(code: int = 0):
    """Terminate the process without joining worker threads.

    Interpreter shutdown waits for scheduler pool workers, so a cycle stuck
    in an HTTP call would otherwise hold the process open past the grace
    period.
    """
    flush_handlers()
    os._exit(code)


# ------------------------------------------------------------------
# Shared job factories
# ------------------------------------------------------------------

def _make_sync_job(reconciler: StockReconciler):
    """Create and return the sync-job callable."""
    logger = get_sync_logger()

    def sync_job():
        logger.info(f"Scheduled sync job started at {datetime.now()}")

        try:
            result = reconciler.run_cycle()
        except TransportError as e:
            logger.error(f"Sync job aborted, catalog unavailable: {e.message}")
            return
        except Exception as e:
            logger.error(f"Sync job failed with exception: {str(e)}", exc_info=True)
            return

        if result.rejected:
            logger.warning("Sync already in progress, skipping scheduled run")
            return

        logger.info("Sync job completed:")
        logger.info(f"  Total items:      {result.total_items}")
        logger.info(f"  Checked:          {result.items_checked}")
        logger.info(f"  Updates applied:  {result.updates_applied}")
        logger.info(f"  Updates failed:   {result.updates_failed}")
        logger.info(f"  Lookup failures:  {result.resolution_failures}")
        logger.info(f"  Duration:         {result.duration:.2f}s")

        if not result.success:
            logger.warning(f"Sync completed with {result.error_count} errors")

    return sync_job


def _make_stats_job(reconciler: StockReconciler):
    """Create the periodic status-report callable."""
    logger = get_sync_logger()

    def stats_job():
        stats = reconciler.get_stats()
        logger.info(
            "Service Status: "
            f"state={stats['state']} "
            f"cycles={stats['total_cycles']} "
            f"items={stats['total_items_checked']} "
            f"updates={stats['total_updates_applied']} "
            f"errors={stats['total_errors']} "
            f"last_sync={stats['last_sync_time']}"
        )

    return stats_job


# ------------------------------------------------------------------
# Embedded (non-blocking) scheduler used by the status server
# ------------------------------------------------------------------

def create_background_scheduler(reconciler: StockReconciler) -> BackgroundScheduler:
    """Create a ``BackgroundScheduler`` for embedding inside FastAPI.

    The scheduler is returned **not started**. An initial sync is scheduled
    ``scheduler.initial_delay_seconds`` after creation so the server can
    finish starting first.
    """
    config = get_config()
    logger = get_sync_logger()
    get_scheduler_logger()
    sync_interval = config.env.sync_interval_minutes

    scheduler = BackgroundScheduler(timezone=config.scheduler.timezone)
    sync_job = _make_sync_job(reconciler)

    scheduler.add_job(
        func=sync_job,
        trigger=IntervalTrigger(minutes=sync_interval),
        id="stock_sync",
        name="Local to WooCommerce Stock Sync",
        max_instances=config.scheduler.max_instances,
        coalesce=config.scheduler.coalesce,
        misfire_grace_time=config.scheduler.misfire_grace_time,
        replace_existing=True
    )

    scheduler.add_job(
        func=sync_job,
        trigger="date",
        run_date=datetime.now(scheduler.timezone) + timedelta(seconds=config.scheduler.initial_delay_seconds),
        id="initial_sync",
        name="Initial sync on startup",
    )

    logger.info(
        f"Background scheduler configured: sync every {sync_interval} min "
        f"(initial run in ~{config.scheduler.initial_delay_seconds} s)"
    )
    return scheduler


# ------------------------------------------------------------------
# Standalone (blocking) scheduler
# ------------------------------------------------------------------

class SyncScheduler:
    """Scheduler for periodic local → WooCommerce synchronization."""

    def __init__(self, reconciler: Optional[StockReconciler] = None):
        """Initialize scheduler."""
        self.config = get_config()
        self.logger = get_sync_logger()
        get_scheduler_logger()
        self.reconciler = reconciler or StockReconciler(config=self.config)
        self.sync_job = _make_sync_job(self.reconciler)

        self.scheduler = BlockingScheduler(
            timezone=self.config.scheduler.timezone
        )

        signal.signal(signal.SIGINT, self._shutdown_handler)
        signal.signal(signal.SIGTERM, self._shutdown_handler)

    def _shutdown_handler(self, signum, frame):
        self.logger.info(f"Received shutdown signal ({signum}). Starting graceful shutdown...")
        if not self.shutdown():
            exit_immediately(0)
        sys.exit(0)

    def shutdown(self) -> bool:
        """
        Stop scheduling and give an in-flight cycle a bounded grace period.

        Returns:
            True if the service went idle within the grace period.
        """
        grace = self.config.scheduler.shutdown_grace_period
        self.reconciler.request_stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        idle = self.reconciler.wait_until_idle(timeout=grace)
        if idle:
            self.logger.info("Graceful shutdown completed")
        else:
            self.logger.warning(f"Sync still running after {grace}s grace period; exiting anyway")
        self.reconciler.close()
        return idle

    def start(self):
        """Check connections, run an initial sync, then block on the schedule."""
        sync_interval_minutes = self.config.env.sync_interval_minutes

        self.logger.info("=" * 70)
        self.logger.info("IPOS → WooCommerce Stock Sync Service Starting")
        self.logger.info("=" * 70)
        self.logger.info(f"Environment:      {self.config.env.environment}")
        self.logger.info(f"Timezone:         {self.config.scheduler.timezone}")
        self.logger.info(f"Sync interval:    {sync_interval_minutes} minutes")
        self.logger.info(f"Batch size:       {self.config.sync.batch_size}")
        self.logger.info("=" * 70)

        # Refuse to schedule anything against unreachable APIs
        self.reconciler.test_connections()

        self.scheduler.add_job(
            func=self.sync_job,
            trigger=IntervalTrigger(minutes=sync_interval_minutes),
            id="stock_sync",
            name="Local to WooCommerce Stock Sync",
            max_instances=self.config.scheduler.max_instances,
            coalesce=self.config.scheduler.coalesce,
            misfire_grace_time=self.config.scheduler.misfire_grace_time,
            replace_existing=True
        )

        if not self.config.is_production:
            self.scheduler.add_job(
                func=_make_stats_job(self.reconciler),
                trigger=IntervalTrigger(seconds=self.config.scheduler.stats_interval_seconds),
                id="stats_report",
                name="Service status report",
                replace_existing=True
            )

        self.logger.info(f"Scheduled job: sync every {sync_interval_minutes} minutes")
        self.logger.info("Running initial sync job...")
        self.sync_job()

        self.logger.info("Service is running. Press Ctrl+C to stop.")

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            self.logger.info("Scheduler stopped.")


def main():
    """Main entry point for standalone scheduler."""
    logger = get_sync_logger()
    try:
        scheduler = SyncScheduler()
        scheduler.start()
    except ConnectivityError as e:
        logger.error(f"Failed to start: {e.message}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Scheduler failed to start: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
