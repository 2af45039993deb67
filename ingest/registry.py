"""In-memory index: file_id -> FileRecord."""

import threading
from typing import Dict, List, Optional

from common.logging_config import get_logger
from common.types import FileRecord, FileStatus

logger = get_logger(__name__)


class FileRegistry:
    """
    Thread-safe in-memory index of file records.

    Records are shared objects: the processing queue mutates status fields on
    the instance it gets back from get().
    """

    def __init__(self):
        """Initialize empty registry."""
        self._records: Dict[str, FileRecord] = {}
        self._lock = threading.RLock()

    def add(self, record: FileRecord) -> None:
        """
        Add or replace a record.

        Args:
            record: FileRecord to index
        """
        with self._lock:
            self._records[record.file_id] = record

    def get(self, file_id: str) -> Optional[FileRecord]:
        """
        Retrieve a record by ID.

        Args:
            file_id: ID of the file

        Returns:
            FileRecord if found, None otherwise
        """
        with self._lock:
            return self._records.get(file_id)

    def remove(self, file_id: str) -> Optional[FileRecord]:
        """
        Remove a record.

        Args:
            file_id: ID of the file

        Returns:
            The removed record, or None if it was not indexed
        """
        with self._lock:
            record = self._records.pop(file_id, None)
        if record is not None:
            logger.debug(f"Removed file record {file_id}")
        return record

    def list_by_owner(self, owner_id: str) -> List[FileRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.owner_id == owner_id]

    def list_by_status(self, status: FileStatus) -> List[FileRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.status == status]

    def __contains__(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
