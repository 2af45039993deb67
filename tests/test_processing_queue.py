"""Tests for the serialized processing queue."""

import asyncio

import pytest

from common.types import FailureReason, FileRecord, FileStatus, ProcessingFailure, ProcessingSuccess
from ingest.processing_queue import ProcessingQueue
from ingest.progress import AlwaysFail, ProgressEstimator


async def wait_until(predicate, timeout: float = 2.0):
    """Poll predicate until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


def add_record(registry, file_id, size=100, mime_type="text/plain"):
    record = FileRecord(file_id=file_id, owner_id="alice", size=size, mime_type=mime_type)
    registry.add(record)
    return record


async def instant_processor(record):
    return ProcessingSuccess({"bytes": record.size})


class GatedProcessor:
    """Processor that blocks each item until its gate is opened."""

    def __init__(self, file_ids):
        self.gates = {file_id: asyncio.Event() for file_id in file_ids}
        self.started = []
        self.active = 0
        self.max_active = 0

    async def process(self, record):
        self.started.append(record.file_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.gates[record.file_id].wait()
        finally:
            self.active -= 1
        return ProcessingSuccess({"name": record.file_id})


@pytest.fixture
def make_queue(registry, fast_estimator, never_fail):
    def _make(processor, fault_policy=None):
        return ProcessingQueue(
            registry=registry,
            processor=processor,
            estimator=fast_estimator,
            fault_policy=fault_policy or never_fail,
        )
    return _make


class TestCompletion:
    """Test items reaching a terminal status."""

    @pytest.mark.asyncio
    async def test_item_is_processed(self, registry, make_queue):
        record = add_record(registry, "f1")
        queue = make_queue(instant_processor)

        queue.enqueue("f1")
        await queue.drain()

        assert record.status == FileStatus.PROCESSED
        assert record.progress == 100
        assert record.estimated_time_remaining == 0
        assert record.result == {"bytes": 100}
        assert record.processing_started_at is not None
        assert record.queue_position is None

    @pytest.mark.asyncio
    async def test_sync_processor_supported(self, registry, make_queue):
        record = add_record(registry, "f1")
        queue = make_queue(lambda r: ProcessingSuccess({"sync": True}))

        queue.enqueue("f1")
        await queue.drain()

        assert record.status == FileStatus.PROCESSED
        assert record.result == {"sync": True}

    @pytest.mark.asyncio
    async def test_enqueue_returns_position(self, registry, make_queue):
        for file_id in ("f1", "f2"):
            add_record(registry, file_id)
        queue = make_queue(instant_processor)

        assert queue.enqueue("f1") == 1
        assert queue.enqueue("f2") == 2

        await queue.drain()

    @pytest.mark.asyncio
    async def test_enqueue_is_idempotent(self, registry, make_queue):
        add_record(registry, "f1")
        calls = []

        async def counting(record):
            calls.append(record.file_id)
            return ProcessingSuccess()

        queue = make_queue(counting)
        queue.enqueue("f1")
        queue.enqueue("f1")

        assert queue.status().queue_length == 1
        await queue.drain()
        assert calls == ["f1"]


class TestFailures:
    """Test per-item failure isolation."""

    @pytest.mark.asyncio
    async def test_raising_processor_isolated(self, registry, make_queue):
        bad = add_record(registry, "bad")
        good = add_record(registry, "good")

        async def processor(record):
            if record.file_id == "bad":
                raise RuntimeError("/internal/path exploded")
            return ProcessingSuccess({"ok": True})

        queue = make_queue(processor)
        queue.enqueue("bad")
        queue.enqueue("good")
        await queue.drain()

        assert bad.status == FileStatus.ERROR
        assert bad.progress == 0
        assert bad.result == {"error": "Processing failed"}
        assert good.status == FileStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_processor_failure_outcome(self, registry, make_queue):
        record = add_record(registry, "f1")

        async def processor(record):
            return ProcessingFailure(FailureReason.CORRUPTED, "bad header")

        queue = make_queue(processor)
        queue.enqueue("f1")
        await queue.drain()

        assert record.status == FileStatus.ERROR
        assert record.result == {"error": "Processing failed"}

    @pytest.mark.asyncio
    async def test_injected_transient_fault(self, registry, make_queue):
        record = add_record(registry, "f1")
        queue = make_queue(instant_processor, fault_policy=AlwaysFail())

        queue.enqueue("f1")
        await queue.drain()

        assert record.status == FileStatus.ERROR
        assert record.progress == 0

    @pytest.mark.asyncio
    async def test_invalid_outcome_is_failure(self, registry, make_queue):
        record = add_record(registry, "f1")

        async def processor(record):
            return {"not": "an outcome"}

        queue = make_queue(processor)
        queue.enqueue("f1")
        await queue.drain()

        assert record.status == FileStatus.ERROR

    @pytest.mark.asyncio
    async def test_terminal_status_not_overwritten(self, registry, make_queue):
        record = add_record(registry, "f1")

        async def processor(record):
            record.status = FileStatus.ERROR
            record.result = {"error": "Processing failed"}
            return ProcessingSuccess({"late": True})

        queue = make_queue(processor)
        queue.enqueue("f1")
        await queue.drain()

        assert record.status == FileStatus.ERROR
        assert record.result == {"error": "Processing failed"}


class TestPositions:
    """Test queue position bookkeeping."""

    @pytest.mark.asyncio
    async def test_positions_compact_after_each_dequeue(self, registry, make_queue):
        records = {fid: add_record(registry, fid) for fid in ("f1", "f2", "f3")}
        processor = GatedProcessor(records)
        queue = make_queue(processor.process)

        for fid in ("f1", "f2", "f3"):
            queue.enqueue(fid)

        assert [records[f].queue_position for f in ("f1", "f2", "f3")] == [1, 2, 3]

        await wait_until(lambda: processor.started == ["f1"])
        assert records["f1"].status == FileStatus.PROCESSING
        assert records["f1"].queue_position is None
        assert records["f2"].queue_position == 1
        assert records["f3"].queue_position == 2

        processor.gates["f1"].set()
        await wait_until(lambda: processor.started == ["f1", "f2"])
        assert records["f1"].status == FileStatus.PROCESSED
        assert records["f3"].queue_position == 1

        processor.gates["f2"].set()
        processor.gates["f3"].set()
        await queue.drain()

        assert all(r.status == FileStatus.PROCESSED for r in records.values())
        assert processor.max_active == 1

    @pytest.mark.asyncio
    async def test_cancel_pending_item(self, registry, make_queue):
        records = {fid: add_record(registry, fid) for fid in ("f1", "f2", "f3")}
        processor = GatedProcessor(records)
        queue = make_queue(processor.process)

        for fid in ("f1", "f2", "f3"):
            queue.enqueue(fid)
        await wait_until(lambda: processor.started == ["f1"])

        assert queue.cancel("f2") is True
        assert records["f2"].queue_position is None
        assert records["f3"].queue_position == 1
        assert queue.cancel("f1") is False
        assert queue.cancel("unknown") is False

        for gate in processor.gates.values():
            gate.set()
        await queue.drain()

        assert processor.started == ["f1", "f3"]
        assert records["f2"].status == FileStatus.QUEUED

    @pytest.mark.asyncio
    async def test_removed_record_skipped(self, registry, make_queue):
        add_record(registry, "f1")
        survivor = add_record(registry, "f2")
        queue = make_queue(instant_processor)

        queue.enqueue("f1")
        queue.enqueue("f2")
        registry.remove("f1")
        await queue.drain()

        assert survivor.status == FileStatus.PROCESSED
        assert queue.status().queue_length == 0


class TestProgressReporting:
    """Test progress written back while processing."""

    @pytest.mark.asyncio
    async def test_progress_non_decreasing(self, registry, never_fail):
        record = add_record(registry, "f1")
        estimator = ProgressEstimator(steps=10, min_duration_ms=60, max_duration_ms=60)

        async def slow(record):
            await asyncio.sleep(0.03)
            return ProcessingSuccess()

        queue = ProcessingQueue(registry, slow, estimator=estimator, fault_policy=never_fail)
        queue.enqueue("f1")

        observed = []
        while record.status != FileStatus.PROCESSED:
            if record.status == FileStatus.PROCESSING:
                observed.append(record.progress)
                assert record.progress <= 95
            await asyncio.sleep(0.002)

        assert observed == sorted(observed)
        assert max(observed) > 0
        assert record.progress == 100


class TestWorkerLifecycle:
    """Test worker start, exit and shutdown."""

    @pytest.mark.asyncio
    async def test_worker_exits_and_restarts(self, registry, make_queue):
        first = add_record(registry, "f1")
        second = add_record(registry, "f2")
        queue = make_queue(instant_processor)

        queue.enqueue("f1")
        assert queue.status().worker_active is True
        await queue.drain()
        assert queue.status().worker_active is False

        queue.enqueue("f2")
        await queue.drain()

        assert first.status == FileStatus.PROCESSED
        assert second.status == FileStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_close_fails_in_flight_item(self, registry, make_queue):
        record = add_record(registry, "f1")
        processor = GatedProcessor(["f1"])
        queue = make_queue(processor.process)

        queue.enqueue("f1")
        await wait_until(lambda: processor.started == ["f1"])
        await queue.close()

        assert record.status == FileStatus.ERROR
        assert queue.status().worker_active is False
        with pytest.raises(RuntimeError):
            queue.enqueue("f1")
