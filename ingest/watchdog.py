"""Watchdog that fails items stuck in processing."""

import asyncio
from datetime import timedelta
from typing import List, Optional

from common.logging_config import get_logger
from common.types import FailureReason, FileStatus
from ingest import config
from ingest.processing_queue import mark_failed
from ingest.registry import FileRegistry
from ingest.utils import utcnow

logger = get_logger(__name__)


class ProcessingWatchdog:
    """
    Monitors processing items and marks them failed once they exceed a time
    bound. The queue leaves records it finds already terminal untouched, so a
    late-finishing processor cannot overwrite the watchdog's verdict.
    """

    def __init__(
        self,
        registry: FileRegistry,
        max_processing_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
    ):
        """
        Args:
            registry: Index of file records to monitor
            max_processing_seconds: Time in `processing` before an item is failed (default: 60)
            interval_seconds: Seconds between checks (default: 10)
        """
        self.registry = registry
        self.max_processing_seconds = (
            config.WATCHDOG_TIMEOUT_SECONDS if max_processing_seconds is None else max_processing_seconds
        )
        self.interval_seconds = config.WATCHDOG_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start background monitoring"""
        if self.running:
            logger.warning("Processing watchdog already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._check_loop())
        logger.info(f"Processing watchdog started (timeout={self.max_processing_seconds}s)")

    async def stop(self):
        """Stop background monitoring"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Processing watchdog stopped")

    async def _check_loop(self):
        while self.running:
            try:
                self.check_stuck_items()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Watchdog check error: {e}", exc_info=True)
                await asyncio.sleep(self.interval_seconds)

    def check_stuck_items(self) -> List[str]:
        """
        Fail every item that has been processing longer than the bound.

        Returns:
            IDs of the items marked as failed
        """
        cutoff = utcnow() - timedelta(seconds=self.max_processing_seconds)
        failed = []

        for record in self.registry.list_by_status(FileStatus.PROCESSING):
            started = record.processing_started_at
            if started is None or started > cutoff:
                continue

            mark_failed(record)
            failed.append(record.file_id)
            logger.warning(
                f"File {record.file_id} failed processing: {FailureReason.TIMED_OUT.value} "
                f"(over {self.max_processing_seconds}s in processing)"
            )

        return failed
