"""Queue item repository for database operations (item metadata and payload blobs)."""

import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, List, Optional

from common.logging_config import get_logger
from common.types import ItemStatus
from agent.database import Database
from agent.types import QueueItem

logger = get_logger(__name__)

INDEXED_FIELDS = {"status", "record_id"}

_COLUMNS = (
    "item_id", "record_id", "file_name", "mime_type", "file_size", "metadata",
    "status", "attempts", "max_attempts", "error", "use_chunked",
    "upload_progress", "bytes_uploaded", "created_at", "last_attempt_at", "synced_at",
)


def _row_to_item(row: sqlite3.Row) -> QueueItem:
    return QueueItem(
        item_id=row["item_id"],
        record_id=row["record_id"],
        file_name=row["file_name"],
        mime_type=row["mime_type"],
        file_size=row["file_size"],
        created_at=row["created_at"],
        metadata=json.loads(row["metadata"]),
        status=ItemStatus(row["status"]),
        attempts=row["attempts"],
        max_attempts=row["max_attempts"],
        error=row["error"],
        use_chunked=bool(row["use_chunked"]),
        upload_progress=row["upload_progress"],
        bytes_uploaded=row["bytes_uploaded"],
        last_attempt_at=row["last_attempt_at"],
        synced_at=row["synced_at"],
    )


def _item_to_row(item: QueueItem) -> tuple:
    return (
        item.item_id,
        item.record_id,
        item.file_name,
        item.mime_type,
        item.file_size,
        json.dumps(item.metadata),
        ItemStatus(item.status).value,
        item.attempts,
        item.max_attempts,
        item.error,
        int(item.use_chunked),
        item.upload_progress,
        item.bytes_uploaded,
        item.created_at,
        item.last_attempt_at,
        item.synced_at,
    )


class QueueItemRepository:
    def __init__(self, database: Database):
        self.database = database

    @contextmanager
    def _connection(self, conn=None) -> Generator[sqlite3.Connection, None, None]:
        if conn is not None:
            yield conn
        else:
            with self.database.transaction() as own_conn:
                yield own_conn

    def get(self, item_id: str, conn=None) -> Optional[QueueItem]:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT * FROM queue_items WHERE item_id = ?", (item_id,))
            row = cursor.fetchone()
            return _row_to_item(row) if row else None

    def get_all(self, conn=None) -> List[QueueItem]:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT * FROM queue_items ORDER BY created_at, rowid")
            return [_row_to_item(row) for row in cursor.fetchall()]

    def get_by_index(self, field: str, value: Any, conn=None) -> List[QueueItem]:
        if field not in INDEXED_FIELDS:
            raise ValueError(f"queue_items has no index on {field!r}")
        if isinstance(value, ItemStatus):
            value = value.value

        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute(
                f"SELECT * FROM queue_items WHERE {field} = ? ORDER BY created_at, rowid",
                (value,)
            )
            return [_row_to_item(row) for row in cursor.fetchall()]

    def put(self, item: QueueItem, conn=None) -> QueueItem:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        updates = ", ".join(f"{col} = excluded.{col}" for col in _COLUMNS[1:])

        with self._connection(conn) as db:
            db.execute(
                f"""
                INSERT INTO queue_items ({", ".join(_COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT(item_id) DO UPDATE SET {updates}
                """,
                _item_to_row(item)
            )
        return item

    def delete(self, item_id: str, conn=None) -> bool:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("DELETE FROM queue_items WHERE item_id = ?", (item_id,))
            deleted = cursor.rowcount > 0
            cursor.execute("DELETE FROM queue_payloads WHERE item_id = ?", (item_id,))
        if deleted:
            logger.info(f"Queue item deleted [item_id={item_id}]")
        return deleted

    def put_payload(self, item_id: str, data: bytes, conn=None) -> None:
        with self._connection(conn) as db:
            db.execute(
                """
                INSERT INTO queue_payloads (item_id, data) VALUES (?, ?)
                ON CONFLICT(item_id) DO UPDATE SET data = excluded.data
                """,
                (item_id, sqlite3.Binary(data))
            )

    def get_payload(self, item_id: str, conn=None) -> Optional[bytes]:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT data FROM queue_payloads WHERE item_id = ?", (item_id,))
            row = cursor.fetchone()
            return bytes(row["data"]) if row else None

    def stored_payload_bytes(self, conn=None) -> int:
        """Total size of payloads currently held in the store."""
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT COALESCE(SUM(LENGTH(data)), 0) AS total FROM queue_payloads")
            return int(cursor.fetchone()["total"])

    def count_by_status(self, conn=None) -> dict:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT status, COUNT(*) AS n FROM queue_items GROUP BY status")
            return {row["status"]: row["n"] for row in cursor.fetchall()}
