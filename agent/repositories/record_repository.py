"""Record repository for database operations."""

import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, List, Optional

from common.logging_config import get_logger
from common.types import MediaDescriptor
from agent.database import Database
from agent.types import Record

logger = get_logger(__name__)

INDEXED_FIELDS = {"synced"}


def _row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        record_id=row["record_id"],
        title=row["title"],
        description=row["description"],
        media=[MediaDescriptor(**entry) for entry in json.loads(row["media"])],
        created_at=row["created_at"],
        synced=bool(row["synced"]),
    )


class RecordRepository:
    def __init__(self, database: Database):
        self.database = database

    @contextmanager
    def _connection(self, conn=None) -> Generator[sqlite3.Connection, None, None]:
        if conn is not None:
            yield conn
        else:
            with self.database.transaction() as own_conn:
                yield own_conn

    def get(self, record_id: str, conn=None) -> Optional[Record]:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT * FROM records WHERE record_id = ?", (record_id,))
            row = cursor.fetchone()
            return _row_to_record(row) if row else None

    def get_all(self, conn=None) -> List[Record]:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("SELECT * FROM records ORDER BY created_at, rowid")
            return [_row_to_record(row) for row in cursor.fetchall()]

    def get_by_index(self, field: str, value: Any, conn=None) -> List[Record]:
        if field not in INDEXED_FIELDS:
            raise ValueError(f"records has no index on {field!r}")
        if isinstance(value, bool):
            value = int(value)

        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute(
                f"SELECT * FROM records WHERE {field} = ? ORDER BY created_at, rowid",
                (value,)
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

    def put(self, record: Record, conn=None) -> Record:
        media = json.dumps([
            {"name": m.name, "mime_type": m.mime_type, "size": m.size}
            for m in record.media
        ])

        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute(
                """
                INSERT INTO records (record_id, title, description, media, created_at, synced)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(record_id) DO UPDATE SET
                    title = excluded.title,
                    description = excluded.description,
                    media = excluded.media,
                    created_at = excluded.created_at,
                    synced = excluded.synced
                """,
                (record.record_id, record.title, record.description, media,
                 record.created_at, int(record.synced))
            )
        logger.debug(f"Stored record [record_id={record.record_id}] [synced={record.synced}]")
        return record

    def delete(self, record_id: str, conn=None) -> bool:
        with self._connection(conn) as db:
            cursor = db.cursor()
            cursor.execute("DELETE FROM records WHERE record_id = ?", (record_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Record deleted [record_id={record_id}]")
        return deleted
