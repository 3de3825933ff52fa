"""
A directory-based storage engine: JSON manifest documents and raw segment files.

Layout under the storage path::

    index.json              id counters
    manifests/<id>.json     one ManifestRecord per file
    segments/<id>.seg       raw bytes of one segment
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional

import aiofiles

from offline_storage.models.records import ManifestRecord, SegmentRecord

from .engine import StorageEngine

log = logging.getLogger(__name__)


class FileStorageEngine(StorageEngine):
    """Stores each record in its own file, written asynchronously with aiofiles."""

    def __init__(self, storage_path: str | Path):
        self.root = Path(storage_path)
        self.manifest_dir = self.root / "manifests"
        self.segment_dir = self.root / "segments"
        self.index_path = self.root / "index.json"
        self._index = {"next_manifest_id": 0, "next_segment_id": 0}
        self._index_lock = asyncio.Lock()

    async def init(self) -> None:
        await asyncio.to_thread(self.manifest_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(self.segment_dir.mkdir, parents=True, exist_ok=True)
        if self.index_path.is_file():
            try:
                async with aiofiles.open(self.index_path, encoding="utf-8") as f:
                    self._index.update(json.loads(await f.read()))
            except (json.JSONDecodeError, OSError) as e:
                log.warning(f"Index file unreadable, rebuilding from records: {e}")
                self._index = self._rebuild_index()
        log.debug(f"Opened file storage at '{self.root}'.")

    def _rebuild_index(self) -> dict[str, int]:
        """Derives counters from the files on disk so ids are never reused."""
        manifest_ids = [int(p.stem) for p in self.manifest_dir.glob("*.json")]
        segment_ids = [int(p.stem) for p in self.segment_dir.glob("*.seg")]
        return {
            "next_manifest_id": max(manifest_ids, default=-1) + 1,
            "next_segment_id": max(segment_ids, default=-1) + 1,
        }

    async def _next_id(self, key: str) -> int:
        async with self._index_lock:
            next_id = self._index[key]
            self._index[key] = next_id + 1
            tmp_path = self.index_path.with_suffix(".tmp")
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(self._index))
            await asyncio.to_thread(os.replace, tmp_path, self.index_path)
            return next_id

    def _manifest_path(self, manifest_id: int) -> Path:
        return self.manifest_dir / f"{manifest_id}.json"

    def _segment_path(self, segment_id: int) -> Path:
        return self.segment_dir / f"{segment_id}.seg"

    async def _remove_file(self, path: Path) -> bool:
        try:
            await asyncio.to_thread(path.unlink)
            return True
        except FileNotFoundError:
            return False

    async def reserve_manifest_id(self) -> int:
        return await self._next_id("next_manifest_id")

    async def _read_manifest(self, path: Path) -> ManifestRecord:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return ManifestRecord.model_validate(json.loads(await f.read()))

    async def get_manifest(self, manifest_id: int) -> Optional[ManifestRecord]:
        path = self._manifest_path(manifest_id)
        if not path.is_file():
            return None
        return await self._read_manifest(path)

    async def put_manifest(self, record: ManifestRecord) -> int:
        if record.id is None:
            record.id = await self.reserve_manifest_id()
        path = self._manifest_path(record.id)
        tmp_path = path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(record.model_dump()))
        await asyncio.to_thread(os.replace, tmp_path, path)
        return record.id

    async def remove_manifest(self, manifest_id: int) -> bool:
        return await self._remove_file(self._manifest_path(manifest_id))

    async def get_segment(self, segment_id: int) -> Optional[SegmentRecord]:
        path = self._segment_path(segment_id)
        if not path.is_file():
            return None
        async with aiofiles.open(path, "rb") as f:
            return SegmentRecord(id=segment_id, data=await f.read())

    async def put_segment(self, data: bytes) -> int:
        segment_id = await self._next_id("next_segment_id")
        async with aiofiles.open(self._segment_path(segment_id), "wb") as f:
            await f.write(data)
        return segment_id

    async def remove_segment(self, segment_id: int) -> bool:
        return await self._remove_file(self._segment_path(segment_id))

    @staticmethod
    def _sorted_by_id(paths) -> list[Path]:
        return sorted(paths, key=lambda p: int(p.stem))

    async def for_each_manifest(
        self, visitor: Callable[[ManifestRecord], None]
    ) -> None:
        for path in self._sorted_by_id(self.manifest_dir.glob("*.json")):
            visitor(await self._read_manifest(path))

    async def for_each_segment(self, visitor: Callable[[SegmentRecord], None]) -> None:
        for path in self._sorted_by_id(self.segment_dir.glob("*.seg")):
            segment = await self.get_segment(int(path.stem))
            if segment is not None:
                visitor(segment)
