"""Custom exception classes for the ingest core."""


class IngestError(Exception):
    """
    Base exception class for all ingest-related errors.
    """
    pass


class QuotaExceededError(IngestError):
    """
    Raised when a reservation would push a user past their storage quota.

    Carries the figures the caller needs for a diagnostic message.
    """

    def __init__(self, user_id: str, requested: int, used_space: int, available_space: int):
        self.user_id = user_id
        self.requested = requested
        self.used_space = used_space
        self.available_space = available_space
        super().__init__(
            f"Storage quota exceeded: requested {requested} bytes, "
            f"used {used_space} bytes, available {available_space} bytes"
        )


class InvalidFileSizeError(IngestError):
    """
    Raised when a file size is zero or negative.
    """
    pass


class InvalidQuotaError(IngestError):
    """
    Raised when a quota ceiling is negative.
    """
    pass


class FileTooLargeError(IngestError):
    """
    Raised when an upload exceeds the maximum accepted size.
    """
    pass


class UnsupportedFileTypeError(IngestError):
    """
    Raised when the declared MIME type is not on the allowed list.
    """
    pass


class FileRecordNotFoundError(IngestError):
    """
    Raised when a requested file record does not exist.
    """
    pass


class DuplicateFileError(IngestError):
    """
    Raised when an upload reuses the id of a file that is already registered.
    """
    pass


class InvalidFieldError(IngestError):
    """
    Raised for a metadata field or filter value the service does not accept.
    """
    pass
