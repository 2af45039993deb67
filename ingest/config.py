"""Configuration settings for the ingest core."""

import os

from common.constants import (
    DEFAULT_QUOTA_BYTES,
    MAX_UPLOAD_BYTES,
    PROGRESS_STEPS,
    MIN_PROCESSING_DURATION_MS,
    MAX_PROCESSING_DURATION_MS,
    DEFAULT_FAILURE_PROBABILITY,
)


DEFAULT_USER_QUOTA_BYTES = int(os.environ.get("INGEST_DEFAULT_QUOTA_BYTES", str(DEFAULT_QUOTA_BYTES)))

MAX_FILE_SIZE_BYTES = int(os.environ.get("INGEST_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES)))

ALLOWED_MIME_TYPES = tuple(
    mime.strip()
    for mime in os.environ.get(
        "INGEST_ALLOWED_MIME_TYPES",
        "image/jpeg,image/png,application/pdf,text/csv,text/plain",
    ).split(",")
    if mime.strip()
)

FAILURE_PROBABILITY = float(os.environ.get("INGEST_FAILURE_PROBABILITY", str(DEFAULT_FAILURE_PROBABILITY)))

STEPS = int(os.environ.get("INGEST_PROGRESS_STEPS", str(PROGRESS_STEPS)))

MIN_DURATION_MS = int(os.environ.get("INGEST_MIN_DURATION_MS", str(MIN_PROCESSING_DURATION_MS)))

MAX_DURATION_MS = int(os.environ.get("INGEST_MAX_DURATION_MS", str(MAX_PROCESSING_DURATION_MS)))

WATCHDOG_TIMEOUT_SECONDS = int(os.environ.get("INGEST_WATCHDOG_TIMEOUT_SECONDS", "60"))

WATCHDOG_INTERVAL_SECONDS = int(os.environ.get("INGEST_WATCHDOG_INTERVAL_SECONDS", "10"))
