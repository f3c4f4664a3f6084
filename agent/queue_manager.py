"""Queue manager: the only component that writes records and queue items."""

import dataclasses
from typing import List, Optional, Sequence

from common.constants import (
    CHUNKED_UPLOAD_THRESHOLD_BYTES,
    DEFAULT_MAX_ATTEMPTS,
    MAX_FILE_SIZE_BYTES,
    MAX_SUBMISSION_SIZE_BYTES,
)
from common.logging_config import get_logger
from common.types import ItemStatus, QueueStats
from agent.chunking import should_use_chunked_upload
from agent.database import Database
from agent.exceptions import NotFoundError, StorageExhaustedError, ValidationError
from agent.repositories import QueueItemRepository, RecordRepository
from agent.storage_budget import StorageBudget
from agent.types import MediaFile, QueueItem, Record
from agent.utils import generate_uuid, get_current_timestamp

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset({
    "status",
    "attempts",
    "max_attempts",
    "error",
    "use_chunked",
    "upload_progress",
    "bytes_uploaded",
    "metadata",
    "last_attempt_at",
    "synced_at",
})


class QueueManager:
    """
    CRUD and query operations over records and queue items.

    Args:
        database: Durable store handle
        storage_budget: Default budget checked by ``enqueue`` (None disables the check)
        max_attempts: Attempt ceiling written onto new queue items
        chunk_threshold: Size above which new items use the chunked path
    """

    def __init__(
        self,
        database: Database,
        storage_budget: Optional[StorageBudget] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        chunk_threshold: int = CHUNKED_UPLOAD_THRESHOLD_BYTES,
    ):
        self.database = database
        self.records = RecordRepository(database)
        self.items = QueueItemRepository(database)
        self.storage_budget = storage_budget
        self.max_attempts = max_attempts
        self.chunk_threshold = chunk_threshold

    def enqueue(
        self,
        title: str,
        description: Optional[str],
        files: Sequence[MediaFile],
        storage_budget: Optional[StorageBudget] = None,
    ) -> str:
        """
        Persist one record plus one pending queue item per file, atomically.

        Returns:
            The new record id

        Raises:
            ValidationError: Missing title or files, or size limits exceeded
            StorageExhaustedError: The budget cannot hold the payload
            StoreError: The write failed; nothing was persisted
        """
        self._validate_submission(title, files)

        needed = sum(f.size for f in files)
        budget = storage_budget or self.storage_budget
        if budget is not None:
            available = budget.available_bytes()
            if needed > available:
                logger.warning(f"Rejecting submission: needed={needed} available={available}")
                raise StorageExhaustedError(available=available, needed=needed)

        record_id = generate_uuid()
        created_at = get_current_timestamp()
        record = Record(
            record_id=record_id,
            title=title.strip(),
            description=description,
            media=[f.descriptor() for f in files],
            created_at=created_at,
            synced=False,
        )
        metadata = {"title": record.title, "description": description or ""}

        with self.database.transaction() as conn:
            self.records.put(record, conn=conn)
            for media_file in files:
                item = QueueItem(
                    item_id=generate_uuid(),
                    record_id=record_id,
                    file_name=media_file.name,
                    mime_type=media_file.mime_type or "application/octet-stream",
                    file_size=media_file.size,
                    created_at=created_at,
                    metadata=dict(metadata),
                    max_attempts=self.max_attempts,
                    use_chunked=should_use_chunked_upload(media_file.size, self.chunk_threshold),
                )
                self.items.put(item, conn=conn)
                self.items.put_payload(item.item_id, media_file.data, conn=conn)

        logger.info(f"Enqueued submission [record_id={record_id}] files={len(files)} bytes={needed}")
        return record_id

    def _validate_submission(self, title: str, files: Sequence[MediaFile]) -> None:
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if not files:
            raise ValidationError("At least one media file is required")

        oversized = [f.name for f in files if f.size > MAX_FILE_SIZE_BYTES]
        if any(not f.name for f in files):
            raise ValidationError("Every media file needs a name")
        if oversized:
            raise ValidationError(f"Files too large (max {MAX_FILE_SIZE_BYTES} bytes per file): {', '.join(oversized)}")
        if sum(f.size for f in files) > MAX_SUBMISSION_SIZE_BYTES:
            raise ValidationError(f"Submission too large (max {MAX_SUBMISSION_SIZE_BYTES} bytes)")

    def list_pending(self) -> List[QueueItem]:
        return self.items.get_by_index("status", ItemStatus.PENDING)

    def list_all(self) -> List[QueueItem]:
        return self.items.get_all()

    def list_by_parent(self, record_id: str) -> List[QueueItem]:
        return self.items.get_by_index("record_id", record_id)

    def get_item(self, item_id: str) -> QueueItem:
        item = self.items.get(item_id)
        if item is None:
            raise NotFoundError("Queue item", item_id)
        return item

    def list_records(self) -> List[Record]:
        return self.records.get_all()

    def get_record(self, record_id: str) -> Record:
        record = self.records.get(record_id)
        if record is None:
            raise NotFoundError("Record", record_id)
        return record

    def read_payload(self, item_id: str) -> bytes:
        data = self.items.get_payload(item_id)
        if data is None:
            raise NotFoundError("Payload", item_id)
        return data

    def update(self, item_id: str, **fields) -> QueueItem:
        """
        Merge ``fields`` into the stored item as one read-modify-write transaction.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update queue item fields: {', '.join(sorted(unknown))}")
        if "status" in fields:
            fields["status"] = ItemStatus(fields["status"])

        with self.database.transaction() as conn:
            item = self.items.get(item_id, conn=conn)
            if item is None:
                raise NotFoundError("Queue item", item_id)
            updated = dataclasses.replace(item, **fields)
            self.items.put(updated, conn=conn)

        return updated

    def reconcile(self, record_id: str) -> Optional[bool]:
        """
        Recompute a record's ``synced`` flag from its children.

        Returns:
            The flag after reconciliation, or None if the record no longer exists
        """
        with self.database.transaction() as conn:
            record = self.records.get(record_id, conn=conn)
            if record is None:
                logger.warning(f"Reconcile skipped, record not found [record_id={record_id}]")
                return None

            children = self.items.get_by_index("record_id", record_id, conn=conn)
            all_synced = bool(children) and all(c.status == ItemStatus.SYNCED for c in children)

            if record.synced != all_synced:
                record.synced = all_synced
                self.records.put(record, conn=conn)
                if all_synced:
                    logger.info(f"Record fully synced [record_id={record_id}] items={len(children)}")
                else:
                    logger.warning(f"Record no longer fully synced [record_id={record_id}]")

            return record.synced

    def reset_for_retry(self, item_id: str, reset_attempts: bool = False) -> QueueItem:
        fields = {"status": ItemStatus.PENDING, "error": None, "upload_progress": 0, "bytes_uploaded": 0}
        if reset_attempts:
            fields["attempts"] = 0
        return self.update(item_id, **fields)

    def recover_interrupted(self) -> int:
        """
        Return items stranded in ``uploading`` (crash, cancelled pass, store failure)
        to the queue. Items at their attempt ceiling become ``failed``.

        Must only run while no pass is in progress.

        Returns:
            Number of items recovered
        """
        recovered = 0
        with self.database.transaction() as conn:
            for item in self.items.get_by_index("status", ItemStatus.UPLOADING, conn=conn):
                exhausted = item.attempts >= item.max_attempts
                updated = dataclasses.replace(
                    item,
                    status=ItemStatus.FAILED if exhausted else ItemStatus.PENDING,
                    attempts=min(item.attempts, item.max_attempts),
                    error=item.error or "Transfer interrupted",
                    upload_progress=0,
                    bytes_uploaded=0,
                )
                self.items.put(updated, conn=conn)
                recovered += 1

        if recovered:
            logger.warning(f"Recovered interrupted queue items [count={recovered}]")
        return recovered

    def get_stats(self) -> QueueStats:
        counts = self.items.count_by_status()
        return QueueStats(
            total=sum(counts.values()),
            pending=counts.get(ItemStatus.PENDING.value, 0),
            uploading=counts.get(ItemStatus.UPLOADING.value, 0),
            synced=counts.get(ItemStatus.SYNCED.value, 0),
            failed=counts.get(ItemStatus.FAILED.value, 0),
        )

    def stored_bytes(self) -> int:
        return self.items.stored_payload_bytes()

    def delete_record(self, record_id: str, cascade: bool = False) -> int:
        """
        Administrative removal of a record.

        Args:
            record_id: Record to delete
            cascade: Also delete the record's queue items and payloads

        Returns:
            Number of queue items removed
        """
        removed = 0
        with self.database.transaction() as conn:
            if not self.records.delete(record_id, conn=conn):
                raise NotFoundError("Record", record_id)
            if cascade:
                for item in self.items.get_by_index("record_id", record_id, conn=conn):
                    if self.items.delete(item.item_id, conn=conn):
                        removed += 1

        logger.info(f"Deleted record [record_id={record_id}] cascade={cascade} items_removed={removed}")
        return removed
