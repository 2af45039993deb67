"""Project-wide constants (quota defaults, cipher header layout, processing model)."""

MIB: int = 1024 * 1024

DEFAULT_QUOTA_BYTES: int = 100 * MIB  # 100 MiB per user
MAX_UPLOAD_BYTES: int = 10 * MIB

# Cipher header: salt(16) || iv(16) precedes every ciphertext
SALT_SIZE_BYTES: int = 16
IV_SIZE_BYTES: int = 16
HEADER_SIZE_BYTES: int = SALT_SIZE_BYTES + IV_SIZE_BYTES
KEY_SIZE_BYTES: int = 32
KDF_ITERATIONS: int = 100_000
STREAM_BUFFER_SIZE: int = 64 * 1024

# Simulated processing duration model
PROGRESS_STEPS: int = 10
MIN_PROCESSING_DURATION_MS: int = 1000
MAX_PROCESSING_DURATION_MS: int = 5000
BYTES_PER_MS: int = 1000
MAX_INTERMEDIATE_PROGRESS: int = 95
DEFAULT_FAILURE_PROBABILITY: float = 0.05

GENERIC_PROCESSING_ERROR: str = "Processing failed"

# File listing pagination
DEFAULT_PAGE_LIMIT: int = 20
MAX_PAGE_LIMIT: int = 50
