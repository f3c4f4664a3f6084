"""Engine-specific data type definitions."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from common.types import ItemStatus, MediaDescriptor


@dataclass(frozen=True)
class MediaFile:
    """
    A file handed to ``enqueue``: descriptor fields plus the raw payload.
    """
    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def descriptor(self) -> MediaDescriptor:
        return MediaDescriptor(name=self.name, mime_type=self.mime_type, size=self.size)


@dataclass
class Record:
    record_id: str
    title: str
    description: Optional[str]
    media: List[MediaDescriptor]
    created_at: str
    synced: bool = False


@dataclass
class QueueItem:
    """
    Durable transfer state of one file. The payload lives in its own table
    and is read through ``QueueManager.read_payload``.
    """
    item_id: str
    record_id: str
    file_name: str
    mime_type: str
    file_size: int
    created_at: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    status: ItemStatus = ItemStatus.PENDING
    attempts: int = 0
    max_attempts: int = 5
    error: Optional[str] = None
    use_chunked: bool = False
    upload_progress: int = 0
    bytes_uploaded: int = 0
    last_attempt_at: Optional[str] = None
    synced_at: Optional[str] = None
