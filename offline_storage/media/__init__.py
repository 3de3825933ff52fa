"""
Media Access Layer.

This package defines the player-side collaborators (manifest loader, DRM
context, session releaser) and provides the default HTTP segment fetcher.
"""

from .fetcher import HttpSegmentFetcher
from .interfaces import (
    DrmContext,
    LoadResult,
    ManifestLoader,
    SegmentFetcher,
    SessionReleaser,
)

__all__ = [
    "DrmContext",
    "HttpSegmentFetcher",
    "LoadResult",
    "ManifestLoader",
    "SegmentFetcher",
    "SessionReleaser",
]
