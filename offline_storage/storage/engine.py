"""
The contract every storage backend implements.

Engines persist three record kinds: manifest records, segment records and the
index metadata (id counters) that makes ids unique across the whole store.
Lookups of missing ids return None and removals of missing ids return False;
neither is an error.
"""

import abc
import logging
from typing import Callable, Optional, Type

from offline_storage.models.records import ManifestRecord, SegmentRecord

log = logging.getLogger(__name__)


class StorageEngine(abc.ABC):
    """Key-addressed persistence for stored content."""

    @classmethod
    def is_supported(cls) -> bool:
        """Static capability check, consulted before any instance is created."""
        return True

    async def init(self) -> None:
        """Prepares the backend for use."""

    async def destroy(self) -> None:
        """Releases every resource held by the engine."""

    @abc.abstractmethod
    async def reserve_manifest_id(self) -> int:
        """Allocates a manifest id ahead of the record being committed."""

    @abc.abstractmethod
    async def get_manifest(self, manifest_id: int) -> Optional[ManifestRecord]:
        """Returns the manifest record for `manifest_id`, or None."""

    @abc.abstractmethod
    async def put_manifest(self, record: ManifestRecord) -> int:
        """
        Stores a manifest record and returns its id. Records without an id
        are given a newly reserved one.
        """

    @abc.abstractmethod
    async def remove_manifest(self, manifest_id: int) -> bool:
        """Deletes a manifest record; returns False if it did not exist."""

    @abc.abstractmethod
    async def get_segment(self, segment_id: int) -> Optional[SegmentRecord]:
        """Returns the segment record for `segment_id`, or None."""

    @abc.abstractmethod
    async def put_segment(self, data: bytes) -> int:
        """Stores segment bytes as a new record and returns its id."""

    @abc.abstractmethod
    async def remove_segment(self, segment_id: int) -> bool:
        """Deletes a segment record; returns False if it did not exist."""

    @abc.abstractmethod
    async def for_each_manifest(
        self, visitor: Callable[[ManifestRecord], None]
    ) -> None:
        """Calls `visitor` with every stored manifest record."""

    @abc.abstractmethod
    async def for_each_segment(self, visitor: Callable[[SegmentRecord], None]) -> None:
        """Calls `visitor` with every stored segment record."""


class StorageEngineFactory:
    """
    Creates engines of one backend class.

    The backend is resolved once when the factory is built; the storage
    manager asks `is_supported()` at construction and calls `create()` lazily
    on first use.
    """

    def __init__(self, engine_cls: Type[StorageEngine], **engine_kwargs):
        self.engine_cls = engine_cls
        self.engine_kwargs = engine_kwargs

    def is_supported(self) -> bool:
        return self.engine_cls.is_supported()

    async def create(self) -> StorageEngine:
        """Instantiates and initialises a new engine."""
        engine = self.engine_cls(**self.engine_kwargs)
        await engine.init()
        log.debug(f"Created {self.engine_cls.__name__} storage engine.")
        return engine
