"""Daemon scheduling.

Runs a scan immediately, then on every tick of the configured cron
expression (``schedule.cron``, standard five-field crontab syntax). Ticks
never overlap: a tick that fires while a scan is still running is dropped,
and missed ticks are coalesced into one run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from connpass_watcher.config import ConfigError

logger = logging.getLogger(__name__)

SCAN_JOB_ID = "scan"


def make_trigger(cron: str, timezone: str | None = None) -> CronTrigger:
    """Parse a crontab expression.

    Raises:
        ConfigError: If the expression is invalid
    """
    try:
        return CronTrigger.from_crontab(cron, timezone=timezone)
    except ValueError as e:
        raise ConfigError(f"Invalid schedule.cron '{cron}': {e}") from e


class ScanScheduler:
    """Cron-driven scan runner.

    Example:
        ```python
        scheduler = ScanScheduler("0 9 * * *", run_scan)
        await scheduler.run_forever()
        ```
    """

    def __init__(
        self,
        cron: str,
        job: Callable[[], Awaitable[Any]],
        timezone: str | None = None,
    ):
        self.trigger = make_trigger(cron, timezone)
        self.cron = cron
        self.job = job
        self.scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )
        self._stopped: asyncio.Event | None = None

    async def _run_job(self) -> None:
        # A failed scan must not stop the daemon
        try:
            await self.job()
        except Exception as e:
            logger.exception(f"Scheduled scan failed: {e}")

    def start(self) -> None:
        self.scheduler.add_job(
            self._run_job,
            trigger=self.trigger,
            id=SCAN_JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started (cron: {self.cron})")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        if self._stopped is not None:
            self._stopped.set()

    async def run_forever(self, run_immediately: bool = True) -> None:
        """Run an initial scan, start the schedule and block until shutdown."""
        self._stopped = asyncio.Event()
        if run_immediately:
            await self._run_job()
        self.start()
        try:
            await self._stopped.wait()
        finally:
            self.shutdown()
