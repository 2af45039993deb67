"""FIFO single-consumer queue that serializes file processing."""

import asyncio
import inspect
from typing import Awaitable, Callable, List, Optional, Union

from common.constants import GENERIC_PROCESSING_ERROR
from common.logging_config import get_logger
from common.types import (
    FailureReason,
    FileRecord,
    FileStatus,
    ProcessingFailure,
    ProcessingOutcome,
    ProcessingSuccess,
)
from ingest.progress import FaultPolicy, ProgressEstimator, ProgressTicker, RandomFaultPolicy
from ingest.registry import FileRegistry
from ingest.schemas import QueueStatus
from ingest.utils import utcnow

logger = get_logger(__name__)

Processor = Callable[[FileRecord], Union[ProcessingOutcome, Awaitable[ProcessingOutcome]]]


def mark_failed(record: FileRecord) -> None:
    """Put a record in the terminal error state with the generic error result."""
    record.status = FileStatus.ERROR
    record.progress = 0
    record.estimated_time_remaining = None
    record.queue_position = None
    record.processing_finished_at = utcnow()
    record.result = {"error": GENERIC_PROCESSING_ERROR}


class ProcessingQueue:
    """
    Serializes processing of uploaded files.

    The queue is owned by the event loop it is used on: enqueue() must be
    called from that loop and the worker runs there as a single asyncio task.
    At most one item is in `processing` at a time. An item already being
    processed cannot be cancelled; only pending items can.
    """

    def __init__(
        self,
        registry: FileRegistry,
        processor: Processor,
        estimator: Optional[ProgressEstimator] = None,
        fault_policy: Optional[FaultPolicy] = None,
    ):
        """
        Args:
            registry: Index the queue reads records from and writes status to
            processor: Callback run once per item, sync or async
            estimator: Duration and progress model (default: configured ProgressEstimator)
            fault_policy: Final-step transient fault decision (default: RandomFaultPolicy)
        """
        self.registry = registry
        self.processor = processor
        self.estimator = estimator or ProgressEstimator()
        self.fault_policy = fault_policy or RandomFaultPolicy()

        self._pending: List[str] = []
        self._worker: Optional[asyncio.Task] = None
        self._worker_active = False
        self._current: Optional[str] = None
        self._closed = False

    @property
    def worker_active(self) -> bool:
        return self._worker_active

    def enqueue(self, file_id: str) -> Optional[int]:
        """
        Append a file to the queue and make sure a worker is running.

        Enqueueing an id that is already pending is a no-op. Returns
        immediately; processing happens on the worker task.

        Args:
            file_id: ID of a record in the registry

        Returns:
            1-based queue position, or None if the item is currently processing
        """
        if self._closed:
            raise RuntimeError("Processing queue is closed")

        if file_id == self._current:
            logger.debug(f"File {file_id} is already processing, not re-queued")
            return None

        if file_id not in self._pending:
            self._pending.append(file_id)
            self._recompute_positions()
            logger.info(f"Queued file {file_id} (queue length: {len(self._pending)})")

        if not self._worker_active:
            self._worker_active = True
            self._worker = asyncio.get_running_loop().create_task(self._run())
            logger.debug("Processing worker started")

        return self.position(file_id)

    def cancel(self, file_id: str) -> bool:
        """
        Remove a pending item.

        Args:
            file_id: ID of the file

        Returns:
            True if the item was pending and is now removed, False otherwise
        """
        if file_id not in self._pending:
            return False

        self._pending.remove(file_id)
        record = self.registry.get(file_id)
        if record is not None:
            record.queue_position = None
        self._recompute_positions()

        logger.info(f"Cancelled queued file {file_id}")
        return True

    def position(self, file_id: str) -> Optional[int]:
        record = self.registry.get(file_id)
        if record is None or file_id not in self._pending:
            return None
        return record.queue_position

    def pending(self) -> List[str]:
        return list(self._pending)

    def status(self) -> QueueStatus:
        return QueueStatus(
            queue_length=len(self._pending),
            worker_active=self._worker_active,
            processing_file_id=self._current,
        )

    async def drain(self) -> None:
        """Wait until the queue is empty and the worker has exited."""
        while self._worker_active and self._worker is not None:
            await self._worker

    async def close(self) -> None:
        """
        Stop the worker.

        Pending items stay queued; an item interrupted mid-processing is
        marked as failed so it never stays in `processing`.
        """
        self._closed = True
        if self._worker is None or self._worker.done():
            return

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass

        logger.info("Processing queue closed")

    def _recompute_positions(self) -> None:
        position = 1
        for file_id in self._pending:
            record = self.registry.get(file_id)
            if record is None:
                continue
            record.queue_position = position
            position += 1

    async def _run(self) -> None:
        """Worker loop: process pending items in FIFO order until none remain."""
        try:
            while self._pending:
                file_id = self._pending.pop(0)
                self._recompute_positions()

                record = self.registry.get(file_id)
                if record is None:
                    logger.debug(f"File {file_id} no longer exists, skipping")
                    continue
                if record.status != FileStatus.QUEUED:
                    logger.debug(f"File {file_id} is {record.status.value}, skipping")
                    continue

                self._current = file_id
                try:
                    await self._process(record)
                except asyncio.CancelledError:
                    if not record.status.is_terminal:
                        mark_failed(record)
                    raise
                except Exception as e:
                    logger.error(f"Unexpected error processing file {file_id}: {e}", exc_info=True)
                    if not record.status.is_terminal:
                        mark_failed(record)
                finally:
                    self._current = None
        finally:
            self._worker_active = False
            logger.debug("Processing worker exited")

    async def _process(self, record: FileRecord) -> None:
        record.status = FileStatus.PROCESSING
        record.queue_position = None
        record.progress = 0
        record.estimated_time_remaining = None
        record.processing_started_at = utcnow()
        logger.info(f"Processing file {record.file_id} ({record.size} bytes)")

        plan = self.estimator.plan(record.size)
        ticker = ProgressTicker(
            self.estimator,
            plan,
            lambda progress, eta: self._apply_tick(record, progress, eta),
        )
        tick_task = asyncio.create_task(ticker.run())

        try:
            outcome = await self._invoke_processor(record)
            await tick_task
        finally:
            ticker.stop()
            if not tick_task.done():
                tick_task.cancel()
                try:
                    await tick_task
                except asyncio.CancelledError:
                    pass

        if isinstance(outcome, ProcessingSuccess) and self.fault_policy.should_fail():
            outcome = ProcessingFailure(FailureReason.TRANSIENT_FAULT, "transient fault at final step")

        self._finish(record, outcome)

    def _apply_tick(self, record: FileRecord, progress: int, eta: Optional[int]) -> None:
        if record.status != FileStatus.PROCESSING or progress <= record.progress:
            return
        record.progress = progress
        record.estimated_time_remaining = eta

    async def _invoke_processor(self, record: FileRecord) -> ProcessingOutcome:
        """Run the processor; any exception becomes a ProcessingFailure."""
        try:
            if inspect.iscoroutinefunction(self.processor):
                outcome = await self.processor(record)
            else:
                outcome = await asyncio.to_thread(self.processor, record)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Processor raised for file {record.file_id}: {e}", exc_info=True)
            return ProcessingFailure(FailureReason.INTERNAL, str(e))

        if not isinstance(outcome, (ProcessingSuccess, ProcessingFailure)):
            logger.error(
                f"Processor returned {type(outcome).__name__} for file {record.file_id}, treating as failure"
            )
            return ProcessingFailure(FailureReason.INTERNAL, "invalid processor outcome")

        return outcome

    def _finish(self, record: FileRecord, outcome: ProcessingOutcome) -> None:
        if record.status.is_terminal:
            logger.warning(
                f"File {record.file_id} already {record.status.value} before processing finished, "
                "keeping existing result"
            )
            return

        if isinstance(outcome, ProcessingSuccess):
            record.status = FileStatus.PROCESSED
            record.progress = 100
            record.estimated_time_remaining = 0
            record.processing_finished_at = utcnow()
            record.result = dict(outcome.result)
            logger.info(f"File {record.file_id} processed")
        else:
            mark_failed(record)
            logger.warning(
                f"File {record.file_id} failed processing: {outcome.reason.value}"
                + (f" ({outcome.detail})" if outcome.detail else "")
            )
