"""
Captures DRM licence state when content is stored and releases it on removal.
"""

import logging
from typing import Optional

from offline_storage.exceptions import NoInitDataForOfflineError
from offline_storage.media.interfaces import DrmContext, SessionReleaser
from offline_storage.models.config import StorageConfig
from offline_storage.models.records import ManifestRecord

log = logging.getLogger(__name__)


class DrmBinder:
    """
    Binds DRM sessions and key-system metadata to manifest records.

    Whether sessions are kept depends on `use_persistent_license`, read from
    the live config on every call so later `configure()` calls take effect.
    """

    def __init__(
        self, config: StorageConfig, session_releaser: Optional[SessionReleaser] = None
    ):
        self.config = config
        self.session_releaser = session_releaser

    def check_ready(self, drm_engine: DrmContext, original_uri: str) -> None:
        """
        Fails fast when persistent licensing is requested for encrypted content
        but the DRM context never created a session.
        """
        if not self.config.use_persistent_license:
            return
        if drm_engine.get_drm_info() and not drm_engine.get_session_ids():
            raise NoInitDataForOfflineError(original_uri)

    def bind(self, record: ManifestRecord, drm_engine: DrmContext) -> None:
        """Copies DRM info, session ids and licence expiration onto `record`."""
        drm_info = drm_engine.get_drm_info()
        session_ids = list(drm_engine.get_session_ids())

        if self.config.use_persistent_license:
            record.session_ids = session_ids
            if drm_info is not None and session_ids and drm_info.init_data:
                # Stored sessions replace the init data.
                drm_info = drm_info.model_copy(update={"init_data": []})
        else:
            record.session_ids = []

        record.drm_info = drm_info.model_copy(deep=True) if drm_info else None
        record.expiration = drm_engine.get_expiration()

    async def release(self, record: ManifestRecord) -> bool:
        """
        Asks the session releaser to drop the record's sessions.

        Returns True if sessions were released. Failures are logged and never
        propagate: removing the stored records matters more than the licence.
        """
        if not record.session_ids or self.session_releaser is None:
            return False
        try:
            await self.session_releaser.release_sessions(
                record.drm_info, list(record.session_ids)
            )
            log.debug(
                f"Released {len(record.session_ids)} DRM session(s) for manifest "
                f"{record.id}."
            )
            return True
        except Exception as e:
            log.warning(
                f"[yellow]Could not release DRM sessions for manifest {record.id}:[/] {e}"
            )
            return False
