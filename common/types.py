"""Shared data type definitions (FileRecord, FileStatus, processing outcomes)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


class FileStatus(str, Enum):
    """Lifecycle of an uploaded file in the processing pipeline."""
    QUEUED = "queued"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.PROCESSED, FileStatus.ERROR)


class FailureReason(str, Enum):
    """Why a processing attempt failed."""
    TRANSIENT_FAULT = "transient_fault"
    CORRUPTED = "corrupted"
    UNSUPPORTED = "unsupported"
    TIMED_OUT = "timed_out"
    INTERNAL = "internal"


@dataclass
class FileRecord:
    """
    Metadata and processing state for one uploaded file.

    Status fields are written only by the processing queue and the watchdog.
    """
    file_id: str
    owner_id: str
    size: int
    original_name: str = ""
    mime_type: str = "application/octet-stream"
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: FileStatus = FileStatus.QUEUED
    queue_position: Optional[int] = None
    progress: int = 0
    estimated_time_remaining: Optional[int] = None
    processing_started_at: Optional[datetime] = None
    processing_finished_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    public_access: bool = False


@dataclass(frozen=True)
class ProcessingSuccess:
    """Processor completed; `result` is the payload stored on the record."""
    result: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessingFailure:
    """Processor failed; `reason` stays internal, records get a generic error."""
    reason: FailureReason
    detail: str = ""


ProcessingOutcome = Union[ProcessingSuccess, ProcessingFailure]
