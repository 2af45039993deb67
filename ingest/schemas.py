"""Pydantic snapshots returned across the ingest core boundary."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class QuotaReservation(BaseModel):
    """Ledger state after a reserve or release."""
    user_id: str
    used_space: int
    available_space: int
    percent_used: int


class QuotaStatus(BaseModel):
    """Quota summary for one user."""
    user_id: str
    total: int
    used: int
    available: int
    percent_used: int
    file_count: int
    quota_exceeded: bool


class QuotaFileEntryView(BaseModel):
    """One tracked file in a user's quota."""
    file_id: str
    size: int
    added_at: datetime


class TopUser(BaseModel):
    """Entry in the storage leaderboard."""
    user_id: str
    used_space: int
    percent_used: int
    file_count: int


class QueueStatus(BaseModel):
    """Processing queue summary."""
    queue_length: int
    worker_active: bool
    processing_file_id: Optional[str] = None


class FileStatusView(BaseModel):
    """Public view of a file record's processing state."""
    file_id: str
    owner_id: str
    original_name: str
    mime_type: str
    size: int
    status: str
    queue_position: Optional[int] = None
    progress: int
    estimated_time_remaining: Optional[int] = None
    processing_started_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    public_access: bool = False


class FileListPage(BaseModel):
    """One page of a user's files."""
    files: List[FileStatusView]
    page: int
    limit: int
    total: int
    has_more: bool
    processing_count: int
