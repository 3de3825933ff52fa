"""
Data Models Layer.

This package contains the structures used throughout the library: the
player-side manifest model, the persisted records, tracks and stored-content
descriptors, configuration and per-store statistics.
"""

from .config import StorageConfig
from .manifest import (
    ContentType,
    InitSegmentReference,
    Manifest,
    Period,
    PresentationTimeline,
    SegmentIndex,
    SegmentReference,
    Stream,
    Variant,
)
from .records import (
    DrmInfo,
    ManifestRecord,
    PeriodRecord,
    SegmentInfo,
    SegmentRecord,
    StreamRecord,
)
from .stats import StoreStats
from .tracks import StoredContent, Track

__all__ = [
    "ContentType",
    "DrmInfo",
    "InitSegmentReference",
    "Manifest",
    "ManifestRecord",
    "Period",
    "PeriodRecord",
    "PresentationTimeline",
    "SegmentIndex",
    "SegmentInfo",
    "SegmentRecord",
    "SegmentReference",
    "StorageConfig",
    "StoreStats",
    "StoredContent",
    "Stream",
    "StreamRecord",
    "Track",
    "Variant",
]
