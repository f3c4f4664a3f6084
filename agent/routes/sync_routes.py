"""Sync control and connectivity API routes."""

from fastapi import APIRouter, Depends, Query

from agent.engine import SyncEngine
from agent.routes.dependencies import get_engine
from agent.schemas.sync import QueueStatsResponse, SyncResultResponse, SyncStatusResponse

router = APIRouter(tags=["Sync"])


def _status_response(engine: SyncEngine) -> SyncStatusResponse:
    return SyncStatusResponse(status=engine.status.value, online=engine.is_online())


@router.get("/queue/stats", response_model=QueueStatsResponse)
async def queue_stats(engine: SyncEngine = Depends(get_engine)):
    stats = engine.get_stats()
    return QueueStatsResponse(
        total=stats.total,
        pending=stats.pending,
        uploading=stats.uploading,
        synced=stats.synced,
        failed=stats.failed,
    )


@router.post("/sync", response_model=SyncResultResponse)
async def sync_now(engine: SyncEngine = Depends(get_engine)):
    """
    Run a sync pass now and wait for it.

    Returns ``0/0`` when offline or when a pass is already running.
    """
    result = await engine.sync_now()
    return SyncResultResponse(synced_count=result.synced_count, failed_count=result.failed_count)


@router.post("/sync/retry", response_model=SyncResultResponse)
async def retry_failed(
    include_exhausted: bool = Query(False, description="Also retry items that used every attempt"),
    engine: SyncEngine = Depends(get_engine)
):
    result = await engine.retry_failed(include_exhausted=include_exhausted)
    return SyncResultResponse(synced_count=result.synced_count, failed_count=result.failed_count)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(engine: SyncEngine = Depends(get_engine)):
    return _status_response(engine)


@router.post("/connectivity/online", response_model=SyncStatusResponse)
async def go_online(engine: SyncEngine = Depends(get_engine)):
    """Report connectivity; starts a pass in the background on the offline-to-online transition."""
    engine.bridge.set_online(True)
    return _status_response(engine)


@router.post("/connectivity/offline", response_model=SyncStatusResponse)
async def go_offline(engine: SyncEngine = Depends(get_engine)):
    engine.bridge.set_online(False)
    return _status_response(engine)


@router.post("/connectivity/wake", response_model=SyncStatusResponse)
async def background_wake(engine: SyncEngine = Depends(get_engine)):
    engine.bridge.background_wake()
    return _status_response(engine)
