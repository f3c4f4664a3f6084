"""Pydantic schemas for API requests and responses."""

from agent.schemas.submissions import (
    MediaDescriptorResponse,
    EnqueueResponse,
    QueueItemResponse,
    RecordResponse,
    RecordDetailResponse,
    ListRecordsResponse,
    ListQueueResponse
)
from agent.schemas.sync import (
    SyncResultResponse,
    QueueStatsResponse,
    SyncStatusResponse
)
from agent.schemas.common import ErrorResponse

__all__ = [
    "MediaDescriptorResponse",
    "EnqueueResponse",
    "QueueItemResponse",
    "RecordResponse",
    "RecordDetailResponse",
    "ListRecordsResponse",
    "ListQueueResponse",
    "SyncResultResponse",
    "QueueStatsResponse",
    "SyncStatusResponse",
    "ErrorResponse"
]
