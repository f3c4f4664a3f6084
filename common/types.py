"""Shared data type definitions (statuses, sync results, progress events)."""

from dataclasses import dataclass
from enum import Enum


class ItemStatus(str, Enum):
    """Lifecycle of a single queued file transfer."""
    PENDING = "pending"
    UPLOADING = "uploading"
    SYNCED = "synced"
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Overall state published by the sync coordinator."""
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class MediaDescriptor:
    """
    Metadata for one file of a submission (no payload).
    """
    name: str
    mime_type: str
    size: int


@dataclass(frozen=True)
class SyncResult:
    synced_count: int = 0
    failed_count: int = 0


@dataclass(frozen=True)
class QueueStats:
    total: int = 0
    pending: int = 0
    uploading: int = 0
    synced: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ProgressUpdate:
    """
    Progress of the chunked upload of one queue item.
    """
    item_id: str
    percentage: int
    bytes_uploaded: int
    total_bytes: int
