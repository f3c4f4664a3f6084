"""Pydantic schemas for submission and queue endpoints."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class MediaDescriptorResponse(BaseModel):
    name: str
    mime_type: str
    size: int


class EnqueueResponse(BaseModel):
    """Response model for a queued submission."""
    record_id: str


class QueueItemResponse(BaseModel):
    """Queue item without its payload."""
    item_id: str
    record_id: str
    file_name: str
    mime_type: str
    file_size: int
    metadata: Dict[str, Any]
    status: str
    attempts: int
    max_attempts: int
    error: Optional[str] = None
    use_chunked: bool
    upload_progress: int
    bytes_uploaded: int
    created_at: str
    last_attempt_at: Optional[str] = None
    synced_at: Optional[str] = None


class RecordResponse(BaseModel):
    record_id: str
    title: str
    description: Optional[str] = None
    media: List[MediaDescriptorResponse]
    created_at: str
    synced: bool


class RecordDetailResponse(RecordResponse):
    """Record together with its queue items."""
    items: List[QueueItemResponse]


class ListRecordsResponse(BaseModel):
    records: List[RecordResponse]


class ListQueueResponse(BaseModel):
    items: List[QueueItemResponse]
