"""Submission and queue API routes."""

import mimetypes
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from agent.engine import SyncEngine
from agent.routes.dependencies import get_engine
from agent.schemas.submissions import (
    EnqueueResponse,
    ListQueueResponse,
    ListRecordsResponse,
    MediaDescriptorResponse,
    QueueItemResponse,
    RecordDetailResponse,
    RecordResponse,
)
from agent.types import MediaFile, QueueItem, Record

router = APIRouter(tags=["Submissions"])


def _item_response(item: QueueItem) -> QueueItemResponse:
    fields = asdict(item)
    fields["status"] = item.status.value
    return QueueItemResponse(**fields)


def _record_fields(record: Record) -> dict:
    return {
        "record_id": record.record_id,
        "title": record.title,
        "description": record.description,
        "media": [
            MediaDescriptorResponse(name=m.name, mime_type=m.mime_type, size=m.size)
            for m in record.media
        ],
        "created_at": record.created_at,
        "synced": record.synced,
    }


@router.post("/submissions", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    title: str = Form(""),
    description: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    engine: SyncEngine = Depends(get_engine)
):
    """
    Queue a submission with its media files.

    Parameters:
        - title: Submission title (required, non-blank)
        - description: Optional free text
        - files: One or more media files (multipart/form-data)

    Returns:
        - record_id: Id of the new local record

    Raises:
        - 400: Missing title or files, or size limits exceeded
        - 507: Not enough local storage for the payload
    """
    media_files = []
    for upload in files or []:
        data = await upload.read()
        name = upload.filename or ""
        mime_type = upload.content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        media_files.append(MediaFile(name=name, mime_type=mime_type, data=data))

    record_id = engine.enqueue(title, description, media_files)
    return EnqueueResponse(record_id=record_id)


@router.get("/submissions", response_model=ListRecordsResponse)
async def list_submissions(engine: SyncEngine = Depends(get_engine)):
    """List local records, oldest first."""
    return ListRecordsResponse(
        records=[RecordResponse(**_record_fields(r)) for r in engine.list_records()]
    )


@router.get("/submissions/{record_id}", response_model=RecordDetailResponse)
async def get_submission(record_id: str, engine: SyncEngine = Depends(get_engine)):
    """
    Record with the transfer state of each of its files.

    Raises:
        - 404: Unknown record id
    """
    record = engine.get_record(record_id)
    items = engine.items_for_record(record_id)
    return RecordDetailResponse(
        **_record_fields(record),
        items=[_item_response(i) for i in items]
    )


@router.get("/queue", response_model=ListQueueResponse)
async def list_queue(engine: SyncEngine = Depends(get_engine)):
    return ListQueueResponse(items=[_item_response(i) for i in engine.list_items()])
