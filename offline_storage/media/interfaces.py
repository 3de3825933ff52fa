"""
Interfaces of the player-side collaborators the storage manager depends on.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from offline_storage.models.manifest import Manifest
from offline_storage.models.records import DrmInfo


class DrmContext(Protocol):
    """The DRM state negotiated while loading a manifest."""

    def get_drm_info(self) -> Optional[DrmInfo]: ...

    def get_session_ids(self) -> Sequence[str]: ...

    def get_expiration(self) -> float: ...


@dataclass
class LoadResult:
    """What the player's manifest loader hands back for one URI."""

    manifest: Manifest
    drm_engine: DrmContext


class ManifestLoader(Protocol):
    """Loads and parses a manifest, initialising DRM along the way."""

    async def load(self, original_uri: str) -> LoadResult: ...


class SegmentFetcher(Protocol):
    """Fetches the bytes of one segment, trying each URI in turn."""

    async def fetch(
        self, uris: Sequence[str], start_byte: int = 0, end_byte: Optional[int] = None
    ) -> bytes: ...


class SessionReleaser(Protocol):
    """Releases persistent DRM sessions that belong to removed content."""

    async def release_sessions(
        self, drm_info: Optional[DrmInfo], session_ids: Sequence[str]
    ) -> Any: ...
