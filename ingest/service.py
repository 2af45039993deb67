"""Ingest service: accepts uploads, reserves quota and schedules processing."""

from typing import Any, Optional, Sequence

from common.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from common.logging_config import get_logger
from common.types import FileRecord, FileStatus
from ingest import config
from ingest.exceptions import (
    DuplicateFileError,
    FileRecordNotFoundError,
    FileTooLargeError,
    InvalidFieldError,
    InvalidFileSizeError,
    UnsupportedFileTypeError,
)
from ingest.processing_queue import ProcessingQueue, Processor
from ingest.processors import SimulatedProcessor
from ingest.progress import FaultPolicy, ProgressEstimator
from ingest.quota_ledger import QuotaLedger
from ingest.registry import FileRegistry
from ingest.schemas import FileListPage, FileStatusView, QueueStatus, QuotaStatus
from ingest.utils import generate_uuid, utcnow
from ingest.watchdog import ProcessingWatchdog

logger = get_logger(__name__)


class IngestService:
    EDITABLE_FIELDS = ("original_name", "public_access")

    def __init__(
        self,
        ledger: Optional[QuotaLedger] = None,
        registry: Optional[FileRegistry] = None,
        processor: Optional[Processor] = None,
        estimator: Optional[ProgressEstimator] = None,
        fault_policy: Optional[FaultPolicy] = None,
        max_file_size: Optional[int] = None,
        allowed_mime_types: Optional[Sequence[str]] = None,
        watchdog: Optional[ProcessingWatchdog] = None,
    ):
        self.ledger = ledger or QuotaLedger()
        self.registry = registry or FileRegistry()
        self.queue = ProcessingQueue(
            registry=self.registry,
            processor=processor or SimulatedProcessor().process,
            estimator=estimator,
            fault_policy=fault_policy,
        )
        self.max_file_size = config.MAX_FILE_SIZE_BYTES if max_file_size is None else max_file_size
        self.allowed_mime_types = tuple(
            config.ALLOWED_MIME_TYPES if allowed_mime_types is None else allowed_mime_types
        )
        self.watchdog = watchdog

    async def start(self) -> None:
        if self.watchdog is not None:
            await self.watchdog.start()

    async def stop(self) -> None:
        if self.watchdog is not None:
            await self.watchdog.stop()
        await self.queue.close()

    async def accept_upload(
        self,
        owner_id: str,
        original_name: str,
        mime_type: str,
        size: int,
        file_id: Optional[str] = None,
    ) -> FileStatusView:
        """
        Validate an upload, count it against the owner's quota and queue it.

        Returns as soon as the file is queued; processing runs in the
        background.

        Raises:
            InvalidFileSizeError: If size <= 0
            FileTooLargeError: If size exceeds the maximum upload size
            UnsupportedFileTypeError: If mime_type is not allowed
            DuplicateFileError: If file_id is already registered
            QuotaExceededError: If the owner has no room left
        """
        if size <= 0:
            raise InvalidFileSizeError("Cannot upload empty file")
        if size > self.max_file_size:
            raise FileTooLargeError(f"File too large: {size} bytes (max {self.max_file_size})")
        if mime_type not in self.allowed_mime_types:
            raise UnsupportedFileTypeError(f"Unsupported file type: {mime_type}")

        file_id = file_id or generate_uuid()
        if file_id in self.registry:
            raise DuplicateFileError(f"File {file_id} already exists")

        self.ledger.reserve(owner_id, file_id, size)

        try:
            record = FileRecord(
                file_id=file_id,
                owner_id=owner_id,
                size=size,
                original_name=original_name,
                mime_type=mime_type,
                uploaded_at=utcnow(),
            )
            self.registry.add(record)
            self.queue.enqueue(file_id)
        except Exception as e:
            logger.error(f"Failed to schedule upload {file_id}: {e}")
            self.queue.cancel(file_id)
            self.registry.remove(file_id)
            self.ledger.release(owner_id, file_id, size)
            raise

        logger.info(f"Accepted upload {file_id} from user {owner_id} ({size} bytes)")
        return self._view(record)

    async def delete_file(self, file_id: str) -> QuotaStatus:
        """
        Remove a file: drop it from the queue if pending, forget its record
        and release its quota.

        A file that is processing keeps running to completion; its result is
        discarded with the record.
        """
        record = self.registry.get(file_id)
        if record is None:
            raise FileRecordNotFoundError(f"File {file_id} not found")

        self.queue.cancel(file_id)
        if record.status == FileStatus.PROCESSING:
            logger.info(f"File {file_id} deleted while processing; processing is not interrupted")

        self.registry.remove(file_id)
        self.ledger.release(record.owner_id, file_id, record.size)

        logger.info(f"Deleted file {file_id} (user {record.owner_id})")
        return self.ledger.status(record.owner_id)

    def get_file(self, file_id: str) -> FileStatusView:
        record = self.registry.get(file_id)
        if record is None:
            raise FileRecordNotFoundError(f"File {file_id} not found")
        return self._view(record)

    def list_files(
        self,
        owner_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> FileListPage:
        """
        List a user's files in upload order, one page at a time.

        Args:
            owner_id: Owner whose files are listed
            status: Only include files in this status (queued, processing, processed, error)
            page: 1-based page number; values below 1 are treated as 1
            limit: Page size; values below 1 fall back to the default, capped at 50

        Returns:
            FileListPage; processing_count counts every file currently processing

        Raises:
            InvalidFieldError: If status is not a known file status
        """
        files = self.registry.list_by_owner(owner_id)

        if status is not None:
            try:
                wanted = FileStatus(status)
            except ValueError:
                raise InvalidFieldError(f"Invalid status filter: {status}")
            files = [r for r in files if r.status == wanted]

        if limit < 1:
            limit = DEFAULT_PAGE_LIMIT
        limit = min(limit, MAX_PAGE_LIMIT)
        page = max(1, page)
        start = (page - 1) * limit

        return FileListPage(
            files=[self._view(r) for r in files[start:start + limit]],
            page=page,
            limit=limit,
            total=len(files),
            has_more=start + limit < len(files),
            processing_count=len(self.registry.list_by_status(FileStatus.PROCESSING)),
        )

    def update_metadata(self, file_id: str, **fields: Any) -> FileStatusView:
        """
        Update user-editable metadata of a file.

        Only original_name and public_access can be changed. The whole update
        is rejected if any field is unknown or has the wrong type.

        Raises:
            FileRecordNotFoundError: If the file does not exist
            InvalidFieldError: If a field is not editable or its value is invalid
        """
        record = self.registry.get(file_id)
        if record is None:
            raise FileRecordNotFoundError(f"File {file_id} not found")

        for name, value in fields.items():
            if name not in self.EDITABLE_FIELDS:
                raise InvalidFieldError(f"Invalid field: {name}")
            if name == "original_name" and (not isinstance(value, str) or not value.strip()):
                raise InvalidFieldError("original_name must be a non-empty string")
            if name == "public_access" and not isinstance(value, bool):
                raise InvalidFieldError("public_access must be a boolean")

        for name, value in fields.items():
            setattr(record, name, value)

        logger.info(f"Updated metadata of file {file_id}: {sorted(fields)}")
        return self._view(record)

    def quota_status(self, owner_id: str) -> QuotaStatus:
        return self.ledger.status(owner_id)

    def queue_status(self) -> QueueStatus:
        return self.queue.status()

    @staticmethod
    def _view(record: FileRecord) -> FileStatusView:
        return FileStatusView(
            file_id=record.file_id,
            owner_id=record.owner_id,
            original_name=record.original_name,
            mime_type=record.mime_type,
            size=record.size,
            status=record.status.value,
            queue_position=record.queue_position,
            progress=record.progress,
            estimated_time_remaining=record.estimated_time_remaining,
            processing_started_at=record.processing_started_at,
            result=dict(record.result) if record.result is not None else None,
            public_access=record.public_access,
        )
