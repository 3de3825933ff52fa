"""
A non-persistent storage engine that keeps every record in process memory.
"""

from typing import Callable, Optional

from offline_storage.models.records import ManifestRecord, SegmentRecord

from .engine import StorageEngine


class MemoryStorageEngine(StorageEngine):
    """Dictionary-backed engine; ids start at 0 and iteration follows insertion."""

    def __init__(self):
        self._manifests: dict[int, ManifestRecord] = {}
        self._segments: dict[int, SegmentRecord] = {}
        self._next_manifest_id = 0
        self._next_segment_id = 0

    async def destroy(self) -> None:
        self._manifests.clear()
        self._segments.clear()

    async def reserve_manifest_id(self) -> int:
        manifest_id = self._next_manifest_id
        self._next_manifest_id += 1
        return manifest_id

    async def get_manifest(self, manifest_id: int) -> Optional[ManifestRecord]:
        record = self._manifests.get(manifest_id)
        return record.model_copy(deep=True) if record else None

    async def put_manifest(self, record: ManifestRecord) -> int:
        if record.id is None:
            record.id = await self.reserve_manifest_id()
        self._manifests[record.id] = record.model_copy(deep=True)
        return record.id

    async def remove_manifest(self, manifest_id: int) -> bool:
        return self._manifests.pop(manifest_id, None) is not None

    async def get_segment(self, segment_id: int) -> Optional[SegmentRecord]:
        return self._segments.get(segment_id)

    async def put_segment(self, data: bytes) -> int:
        segment_id = self._next_segment_id
        self._next_segment_id += 1
        self._segments[segment_id] = SegmentRecord(id=segment_id, data=bytes(data))
        return segment_id

    async def remove_segment(self, segment_id: int) -> bool:
        return self._segments.pop(segment_id, None) is not None

    async def for_each_manifest(
        self, visitor: Callable[[ManifestRecord], None]
    ) -> None:
        for record in list(self._manifests.values()):
            visitor(record.model_copy(deep=True))

    async def for_each_segment(self, visitor: Callable[[SegmentRecord], None]) -> None:
        for record in list(self._segments.values()):
            visitor(record)
