"""
Manages the SQLite database that holds stored manifests and segment bytes.
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Callable, Optional

from offline_storage.models.records import ManifestRecord, SegmentRecord

from .engine import StorageEngine

log = logging.getLogger(__name__)


class SqliteStorageEngine(StorageEngine):
    """
    A SQLite-backed storage engine with a bounded pool of worker threads.

    Manifest records are stored as JSON documents, segment bytes as BLOBs, and
    id counters in a `sequences` table.
    """

    DB_FILENAME = "offline_storage.sqlite"

    def __init__(self, storage_path: str | Path, pool_size: int = 5):
        self.db_path = Path(storage_path) / self.DB_FILENAME
        self._pool_size = pool_size
        self._connection_semaphore = asyncio.Semaphore(pool_size)

    @classmethod
    def is_supported(cls) -> bool:
        # WAL journaling needs SQLite 3.7.0 or later.
        return sqlite3.sqlite_version_info >= (3, 7, 0)

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            return conn
        except sqlite3.Error as e:
            log.error(f"Failed to connect to storage database: {e}")
            raise

    def _initialize_db(self) -> None:
        """Creates the database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS manifests (
                        id INTEGER PRIMARY KEY NOT NULL,
                        body TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS segments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        data BLOB NOT NULL
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sequences (
                        name TEXT PRIMARY KEY NOT NULL,
                        next_id INTEGER NOT NULL
                    );
                    """
                )
                conn.execute(
                    "INSERT OR IGNORE INTO sequences (name, next_id) VALUES ('manifest', 0)"
                )
                conn.commit()
        except sqlite3.Error as e:
            log.error(f"Failed to initialize storage database at '{self.db_path}': {e}")
            raise

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    async def init(self) -> None:
        await self._run_in_executor(self._initialize_db)
        log.debug(f"Opened storage database at '{self.db_path}'.")

    def _reserve_manifest_id_sync(self) -> int:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT next_id FROM sequences WHERE name = 'manifest'"
            ).fetchone()
            conn.execute(
                "UPDATE sequences SET next_id = next_id + 1 WHERE name = 'manifest'"
            )
            conn.commit()
            return row[0]

    async def reserve_manifest_id(self) -> int:
        return await self._run_in_executor(self._reserve_manifest_id_sync)

    def _get_manifest_sync(self, manifest_id: int) -> Optional[ManifestRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT body FROM manifests WHERE id = ?", (manifest_id,)
            ).fetchone()
        if row is None:
            return None
        return ManifestRecord.model_validate(json.loads(row[0]))

    async def get_manifest(self, manifest_id: int) -> Optional[ManifestRecord]:
        return await self._run_in_executor(self._get_manifest_sync, manifest_id)

    def _put_manifest_sync(self, record: ManifestRecord) -> int:
        body = json.dumps(record.model_dump())
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO manifests (id, body) VALUES (?, ?)",
                (record.id, body),
            )
            conn.commit()
        return record.id

    async def put_manifest(self, record: ManifestRecord) -> int:
        if record.id is None:
            record.id = await self.reserve_manifest_id()
        return await self._run_in_executor(self._put_manifest_sync, record)

    def _delete_sync(self, table: str, record_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {table} WHERE id = ?",  # noqa: S608
                (record_id,),
            )
            conn.commit()
            return cursor.rowcount > 0

    async def remove_manifest(self, manifest_id: int) -> bool:
        return await self._run_in_executor(self._delete_sync, "manifests", manifest_id)

    def _get_segment_sync(self, segment_id: int) -> Optional[SegmentRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT data FROM segments WHERE id = ?", (segment_id,)
            ).fetchone()
        if row is None:
            return None
        return SegmentRecord(id=segment_id, data=bytes(row[0]))

    async def get_segment(self, segment_id: int) -> Optional[SegmentRecord]:
        return await self._run_in_executor(self._get_segment_sync, segment_id)

    def _put_segment_sync(self, data: bytes) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO segments (data) VALUES (?)", (sqlite3.Binary(data),)
            )
            conn.commit()
            return cursor.lastrowid

    async def put_segment(self, data: bytes) -> int:
        return await self._run_in_executor(self._put_segment_sync, bytes(data))

    async def remove_segment(self, segment_id: int) -> bool:
        return await self._run_in_executor(self._delete_sync, "segments", segment_id)

    def _all_manifests_sync(self) -> list[ManifestRecord]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT body FROM manifests ORDER BY id").fetchall()
        return [ManifestRecord.model_validate(json.loads(row[0])) for row in rows]

    async def for_each_manifest(
        self, visitor: Callable[[ManifestRecord], None]
    ) -> None:
        for record in await self._run_in_executor(self._all_manifests_sync):
            visitor(record)

    def _all_segments_sync(self) -> list[SegmentRecord]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT id, data FROM segments ORDER BY id").fetchall()
        return [SegmentRecord(id=row[0], data=bytes(row[1])) for row in rows]

    async def for_each_segment(self, visitor: Callable[[SegmentRecord], None]) -> None:
        for record in await self._run_in_executor(self._all_segments_sync):
            visitor(record)

    def _vacuum_sync(self) -> bool:
        """Synchronous implementation for optimizing the database."""
        try:
            with self._get_connection() as conn:
                conn.execute("VACUUM;")
                conn.execute("ANALYZE;")
                conn.commit()
            log.info("Storage database optimized successfully.")
            return True
        except sqlite3.Error as e:
            log.error(f"Database vacuum failed: {e}")
            return False

    async def vacuum(self) -> bool:
        """Reclaims space left behind by removed segments."""
        return await self._run_in_executor(self._vacuum_sync)
