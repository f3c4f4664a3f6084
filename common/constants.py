"""Project-wide constants (chunk sizes, retry ceilings, default ports)."""

MIB: int = 1024 * 1024

CHUNK_SIZE_BYTES: int = 5 * MIB  # 5 MiB per chunk on the chunked path
CHUNKED_UPLOAD_THRESHOLD_BYTES: int = 10 * MIB  # files above this use init/chunk/finalize

DEFAULT_MAX_ATTEMPTS: int = 5
CHUNK_MAX_ATTEMPTS: int = 3
CHUNK_BACKOFF_BASE: int = 2

SYNC_STAGGER_SECONDS: float = 0.1
REQUEST_TIMEOUT_SECONDS: float = 30.0

DEFAULT_CHUNK_ENDPOINT: str = "/media-uploads/chunk"

AGENT_PORT: int = 8700

MAX_FILE_SIZE_BYTES: int = 500 * MIB
MAX_SUBMISSION_SIZE_BYTES: int = 2 * 1024 * MIB
