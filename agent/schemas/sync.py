"""Pydantic schemas for sync and connectivity endpoints."""

from pydantic import BaseModel


class SyncResultResponse(BaseModel):
    synced_count: int
    failed_count: int


class QueueStatsResponse(BaseModel):
    total: int
    pending: int
    uploading: int
    synced: int
    failed: int


class SyncStatusResponse(BaseModel):
    """Current coordinator status and connectivity flag."""
    status: str
    online: bool
