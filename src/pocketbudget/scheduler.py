"""Background task scheduler for the remote sync poll and log clean-up."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger(__name__)

SYNC_POLL_JOB_ID = "remote_sync_poll"
LOG_CLEANUP_JOB_ID = "log_cleanup"
LOG_MAX_AGE_DAYS = 30


class BackgroundScheduler:
    """Runs the remote-update poll and daily maintenance off the main thread."""

    def __init__(self, ctx: AppContext):
        self.ctx = ctx
        self.scheduler: Optional[APScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self.scheduler = APScheduler()
        self.scheduler.add_job(
            func=self._cleanup_logs,
            trigger=CronTrigger(hour=4, minute=0),
            id=LOG_CLEANUP_JOB_ID,
            name="Old log file clean-up",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Background scheduler started")
        self.refresh_sync_job()

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def refresh_sync_job(self) -> bool:
        """Schedule or drop the poll to match the current sync settings.

        Returns whether the poll is scheduled afterwards.
        """

        if self.scheduler is None:
            return False
        settings = self.ctx.sync.settings
        wanted = settings.bidirectional_sync_enabled and bool(settings.access_token)
        existing = self.scheduler.get_job(SYNC_POLL_JOB_ID)

        if not wanted:
            if existing is not None:
                self.scheduler.remove_job(SYNC_POLL_JOB_ID)
                logger.info("Remote sync poll stopped")
            return False

        minutes = self.ctx.config.SYNC_INTERVAL_MINUTES
        self.scheduler.add_job(
            func=self._poll_remote,
            trigger=IntervalTrigger(minutes=minutes),
            id=SYNC_POLL_JOB_ID,
            name="Remote sync poll",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        logger.info(f"Remote sync poll every {minutes} minutes")
        return True

    def _poll_remote(self) -> None:
        try:
            outcome = self.ctx.poll_remote()
            logger.debug(f"Remote poll: {outcome.message}")
        except Exception as exc:
            logger.error(f"Remote poll failed: {exc}", exc_info=True)

    def _cleanup_logs(self) -> None:
        """Delete rotated log files older than ``LOG_MAX_AGE_DAYS``."""
        try:
            logs_dir = Path(self.ctx.config.DATA_DIR) / "logs"
            if not logs_dir.exists():
                return

            cutoff = datetime.now().timestamp() - (LOG_MAX_AGE_DAYS * 24 * 60 * 60)
            for log_file in logs_dir.glob("*.log.*"):
                if log_file.stat().st_mtime < cutoff:
                    log_file.unlink()
                    logger.info(f"Deleted old log file: {log_file.name}")

        except OSError as exc:
            logger.error(f"Log clean-up failed: {exc}", exc_info=True)


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> BackgroundScheduler:
    """Create and optionally start a background scheduler.

    Args:
        ctx: Application context
        auto_start: Whether to start the scheduler immediately

    Returns:
        BackgroundScheduler instance
    """
    scheduler = BackgroundScheduler(ctx)
    ctx.scheduler = scheduler
    if auto_start:
        scheduler.start()
    return scheduler


__all__ = ["BackgroundScheduler", "LOG_CLEANUP_JOB_ID", "SYNC_POLL_JOB_ID", "create_scheduler"]
