"""
offline-storage: persists segmented media content for offline playback.
"""

__version__ = "0.1.0"

from offline_storage.core import StorageManager  # noqa: E402
from offline_storage.exceptions import OfflineStorageError  # noqa: E402
from offline_storage.models import StorageConfig, StoredContent, Track  # noqa: E402

__all__ = [
    "OfflineStorageError",
    "StorageConfig",
    "StorageManager",
    "StoredContent",
    "Track",
    "__version__",
]
