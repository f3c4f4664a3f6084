"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from common.logging_config import get_logger
from agent.exceptions import StoreError

logger = get_logger(__name__)


class Database:
    """
    Handle on one SQLite file. Every engine instance owns its own handle so
    independent engines (e.g. under test) never share state.
    """

    def __init__(self, path: str):
        self.path = str(path)

    def init_schema(self) -> None:
        """
        Create tables and indexes if they don't exist.
        """
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        with self.transaction() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    record_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    media TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    synced INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS queue_items (
                    item_id TEXT PRIMARY KEY,
                    record_id TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    mime_type TEXT NOT NULL,
                    file_size INTEGER NOT NULL,
                    metadata TEXT NOT NULL,
                    status TEXT NOT NULL,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    max_attempts INTEGER NOT NULL,
                    error TEXT,
                    use_chunked INTEGER NOT NULL DEFAULT 0,
                    upload_progress INTEGER NOT NULL DEFAULT 0,
                    bytes_uploaded INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    last_attempt_at TEXT,
                    synced_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS queue_payloads (
                    item_id TEXT PRIMARY KEY,
                    data BLOB NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_records_synced ON records(synced)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_queue_status ON queue_items(status)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_queue_record_id ON queue_items(record_id)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_queue_created_at ON queue_items(created_at)
            """)

        logger.info(f"Database initialized [path={self.path}]")

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections. SQLite failures surface as StoreError.
        """
        try:
            conn = sqlite3.connect(self.path)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database operation failed [path={self.path}]: {e}", exc_info=True)
            raise StoreError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Open a connection inside a write transaction; commit on success, roll back on any error.
        """
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
