"""
Core engine for storing and removing offline content.

The `StorageManager` is the public entry point. It delegates segment
downloads to the `DownloadCoordinator`, licence handling to the `DrmBinder`
and cascading deletes to the removal helpers.
"""

from .download_coordinator import DownloadCoordinator
from .drm_binder import DrmBinder
from .removal import collect_segment_ids, remove_manifest_record
from .storage_manager import StorageManager
from .track_selector import select_tracks

__all__ = [
    "DownloadCoordinator",
    "DrmBinder",
    "StorageManager",
    "collect_segment_ids",
    "remove_manifest_record",
    "select_tracks",
]
