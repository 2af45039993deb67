"""Per-user storage quota accounting with atomic reserve/release."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from common.logging_config import get_logger
from ingest import config
from ingest.exceptions import InvalidFileSizeError, InvalidQuotaError, QuotaExceededError
from ingest.schemas import QuotaFileEntryView, QuotaReservation, QuotaStatus, TopUser
from ingest.utils import percent_of, utcnow

logger = get_logger(__name__)


@dataclass
class QuotaFileEntry:
    """
    A file counted against a user's quota.
    """
    file_id: str
    size: int
    added_at: datetime


@dataclass
class QuotaEntry:
    """
    Quota bookkeeping for one user.

    Invariant: used_space_bytes == sum of entry sizes, never negative.
    """
    user_id: str
    total_quota_bytes: int
    used_space_bytes: int = 0
    files: List[QuotaFileEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def available_bytes(self) -> int:
        return self.total_quota_bytes - self.used_space_bytes


class QuotaLedger:
    """
    Thread-safe per-user byte ledger.

    Each user has their own lock so check-and-commit on reserve is a single
    critical section; the lock table itself is guarded by a registry lock.
    Entries are created lazily on first reference to a user.
    """

    def __init__(self, default_quota_bytes: Optional[int] = None):
        """
        Args:
            default_quota_bytes: Ceiling for users without an explicit quota
                (default: INGEST_DEFAULT_QUOTA_BYTES, 100 MiB)
        """
        if default_quota_bytes is None:
            default_quota_bytes = config.DEFAULT_USER_QUOTA_BYTES
        if default_quota_bytes < 0:
            raise InvalidQuotaError("Default quota cannot be negative")

        self.default_quota_bytes = default_quota_bytes
        self._entries: Dict[str, QuotaEntry] = {}
        self._user_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    def _entry_for(self, user_id: str) -> QuotaEntry:
        """Get or lazily create the entry. Caller must hold the user's lock."""
        entry = self._entries.get(user_id)
        if entry is None:
            entry = QuotaEntry(user_id=user_id, total_quota_bytes=self.default_quota_bytes)
            self._entries[user_id] = entry
            logger.debug(f"Initialized quota for user {user_id} ({entry.total_quota_bytes} bytes)")
        return entry

    def reserve(self, user_id: str, file_id: str, size_bytes: int) -> QuotaReservation:
        """
        Count a file against the user's quota.

        Args:
            user_id: Owner of the file
            file_id: File being added
            size_bytes: Size in bytes, must be > 0

        Returns:
            QuotaReservation with the updated figures

        Raises:
            InvalidFileSizeError: If size_bytes <= 0
            QuotaExceededError: If used + size would exceed the quota; no state changes
        """
        if size_bytes <= 0:
            raise InvalidFileSizeError(f"File size must be positive, got {size_bytes}")

        with self._lock_for(user_id):
            entry = self._entry_for(user_id)

            if entry.used_space_bytes + size_bytes > entry.total_quota_bytes:
                logger.info(
                    f"Quota exceeded for user {user_id}: requested={size_bytes} "
                    f"used={entry.used_space_bytes} total={entry.total_quota_bytes}"
                )
                raise QuotaExceededError(
                    user_id=user_id,
                    requested=size_bytes,
                    used_space=entry.used_space_bytes,
                    available_space=max(0, entry.available_bytes),
                )

            entry.used_space_bytes += size_bytes
            entry.files.append(QuotaFileEntry(file_id=file_id, size=size_bytes, added_at=utcnow()))

            logger.debug(f"Reserved {size_bytes} bytes for file {file_id} (user {user_id})")
            return self._reservation(entry)

    def release(self, user_id: str, file_id: str, size_bytes: int) -> QuotaReservation:
        """
        Stop counting a file against the user's quota.

        Releasing an unknown file_id changes nothing and returns current figures.

        Args:
            user_id: Owner of the file
            file_id: File being removed
            size_bytes: Size that was reserved for the file

        Returns:
            QuotaReservation with the updated figures
        """
        with self._lock_for(user_id):
            entry = self._entry_for(user_id)

            released = [f for f in entry.files if f.file_id == file_id]
            if not released:
                logger.debug(f"Release of untracked file {file_id} for user {user_id} ignored")
                return self._reservation(entry)

            tracked_size = sum(f.size for f in released)
            if tracked_size != size_bytes:
                logger.warning(
                    f"Release size mismatch for file {file_id}: caller={size_bytes} tracked={tracked_size}"
                )

            # The tracked size keeps used == sum(entries)
            entry.files = [f for f in entry.files if f.file_id != file_id]
            entry.used_space_bytes = max(0, entry.used_space_bytes - tracked_size)

            logger.debug(f"Released {size_bytes} bytes for file {file_id} (user {user_id})")
            return self._reservation(entry)

    def status(self, user_id: str) -> QuotaStatus:
        """Quota summary for a user, including whether usage exceeds the ceiling."""
        with self._lock_for(user_id):
            entry = self._entry_for(user_id)
            return QuotaStatus(
                user_id=user_id,
                total=entry.total_quota_bytes,
                used=entry.used_space_bytes,
                available=entry.available_bytes,
                percent_used=percent_of(entry.used_space_bytes, entry.total_quota_bytes),
                file_count=len(entry.files),
                quota_exceeded=entry.used_space_bytes > entry.total_quota_bytes,
            )

    def resize(self, user_id: str, new_total: int) -> QuotaStatus:
        """
        Change a user's quota ceiling.

        Existing usage is untouched; if it now exceeds the ceiling no file is
        evicted and status() reports quota_exceeded.
        """
        if new_total < 0:
            raise InvalidQuotaError(f"Quota cannot be negative, got {new_total}")

        with self._lock_for(user_id):
            entry = self._entry_for(user_id)
            old_total = entry.total_quota_bytes
            entry.total_quota_bytes = new_total

        logger.info(f"Quota for user {user_id} changed from {old_total} to {new_total} bytes")
        return self.status(user_id)

    def reset(self, user_id: str) -> QuotaStatus:
        """Drop all usage for a user and restore the default ceiling."""
        with self._lock_for(user_id):
            self._entries.pop(user_id, None)
            self._entry_for(user_id)

        logger.info(f"Quota reset for user {user_id}")
        return self.status(user_id)

    def entries(self, user_id: str) -> List[QuotaFileEntryView]:
        """Snapshot of the files counted against a user, oldest first."""
        with self._lock_for(user_id):
            entry = self._entry_for(user_id)
            return [
                QuotaFileEntryView(file_id=f.file_id, size=f.size, added_at=f.added_at)
                for f in entry.files
            ]

    def top_users(self, n: int = 10) -> List[TopUser]:
        """
        Users ordered by used space descending, ties by ascending user id.

        Args:
            n: Maximum number of users to return
        """
        if n <= 0:
            return []

        with self._registry_lock:
            user_ids = list(self._entries.keys())

        snapshot = []
        for user_id in user_ids:
            with self._lock_for(user_id):
                entry = self._entries.get(user_id)
                if entry is None:
                    continue
                snapshot.append(TopUser(
                    user_id=user_id,
                    used_space=entry.used_space_bytes,
                    percent_used=percent_of(entry.used_space_bytes, entry.total_quota_bytes),
                    file_count=len(entry.files),
                ))

        snapshot.sort(key=lambda u: (-u.used_space, u.user_id))
        return snapshot[:n]

    def _reservation(self, entry: QuotaEntry) -> QuotaReservation:
        return QuotaReservation(
            user_id=entry.user_id,
            used_space=entry.used_space_bytes,
            available_space=entry.available_bytes,
            percent_used=percent_of(entry.used_space_bytes, entry.total_quota_bytes),
        )
