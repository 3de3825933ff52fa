"""
The main orchestrator for storing, listing and removing offline content.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from offline_storage.exceptions import (
    CannotStoreLiveOfflineError,
    ConfigurationError,
    MalformedOfflineUriError,
    OperationAbortedError,
    RequestedItemNotFoundError,
    StorageNotSupportedError,
    StoreAlreadyInProgressError,
)
from offline_storage.media.interfaces import (
    ManifestLoader,
    SegmentFetcher,
    SessionReleaser,
)
from offline_storage.models.config import StorageConfig
from offline_storage.models.manifest import Period, PresentationTimeline, Stream
from offline_storage.models.records import ManifestRecord, PeriodRecord, StreamRecord
from offline_storage.models.tracks import (
    TEXT,
    VARIANT,
    StoredContent,
    Track,
    get_period_tracks,
    to_stored_content,
)
from offline_storage.storage.engine import StorageEngine, StorageEngineFactory
from offline_storage.storage.factory import create_engine_factory
from offline_storage.utils.offline_uri import manifest_id_to_uri, uri_to_manifest_id
from offline_storage.utils.structured_logger import (
    StorageEventLogger,
    create_structured_logger,
)

from .download_coordinator import DownloadCoordinator
from .drm_binder import DrmBinder
from .removal import collect_segment_ids, remove_manifest_record
from .track_selector import select_tracks

log = logging.getLogger(__name__)

# Options callers may change through configure()
CONFIGURABLE_KEYS = (
    "track_selection_callback",
    "progress_callback",
    "use_persistent_license",
    "preferred_audio_language",
    "max_sd_height",
)


class StorageManager:
    """
    Orchestrates offline storage: one store at a time, plus listing and
    removal of previously stored content.

    The storage engine is created lazily on first use and released by
    `destroy()`, after which every operation raises OperationAbortedError.
    """

    def __init__(
        self,
        loader: ManifestLoader,
        fetcher: SegmentFetcher,
        engine_factory: Optional[StorageEngineFactory] = None,
        config: Optional[StorageConfig] = None,
        session_releaser: Optional[SessionReleaser] = None,
        event_logger: Optional[StorageEventLogger] = None,
    ):
        self.config = config or StorageConfig()
        self.loader = loader
        self.fetcher = fetcher
        self.engine_factory = engine_factory or create_engine_factory(self.config)
        self.drm_binder = DrmBinder(self.config, session_releaser)
        self.event_logger = event_logger or create_structured_logger()[1]

        self._supported = self.engine_factory.is_supported()
        if not self._supported:
            log.warning(
                f"[yellow]{self.engine_factory.engine_cls.__name__} is not supported "
                "on this system; storage operations will fail.[/yellow]"
            )

        self._engine: Optional[StorageEngine] = None
        self._engine_lock = asyncio.Lock()
        self._destroyed = False
        self._store_in_progress = False
        self._store_idle = asyncio.Event()
        self._store_idle.set()

    async def __aenter__(self) -> "StorageManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.destroy()
        return False

    def configure(self, options: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        """
        Merges recognised options into the configuration.

        Unknown keys are logged and ignored. Passing
        `track_selection_callback=None` restores the built-in selector.

        Raises:
            ConfigurationError: If a value fails validation. The configuration
            is left unchanged.
        """
        updates = {**(options or {}), **kwargs}
        candidate = self.config.model_copy()
        try:
            for key, value in updates.items():
                if key not in CONFIGURABLE_KEYS:
                    log.warning(f"[yellow]Ignoring unrecognised option '{key}'.[/yellow]")
                    continue
                setattr(candidate, key, value)
        except ValidationError as e:
            raise ConfigurationError(message=f"Invalid storage option: {e}") from e

        self.config = candidate
        self.drm_binder.config = candidate

    def _check_destroyed(self) -> None:
        if self._destroyed:
            raise OperationAbortedError()

    async def _get_engine(self) -> StorageEngine:
        """Returns the storage engine, creating it on first use."""
        self._check_destroyed()
        if not self._supported:
            raise StorageNotSupportedError()
        async with self._engine_lock:
            self._check_destroyed()
            if self._engine is None:
                self._engine = await self.engine_factory.create()
        return self._engine

    async def store(
        self, original_uri: str, app_metadata: Optional[Dict[str, Any]] = None
    ) -> StoredContent:
        """
        Downloads the content behind `original_uri` and commits it to storage.

        Args:
            original_uri: The manifest URI to load.
            app_metadata: Opaque data stored alongside the content.

        Returns:
            A descriptor for the stored content.

        Raises:
            StoreAlreadyInProgressError: If another store is running.
            OperationAbortedError: If the manager is, or becomes, destroyed.
            StorageNotSupportedError: If the storage engine is unavailable.
            CannotStoreLiveOfflineError: For live content.
            NoInitDataForOfflineError: If persistent licences are required but
            no DRM session exists.
        """
        if self._store_in_progress:
            raise StoreAlreadyInProgressError()
        self._store_in_progress = True
        self._store_idle.clear()

        engine: Optional[StorageEngine] = None
        manifest_id: Optional[int] = None
        coordinator: Optional[DownloadCoordinator] = None
        start_time = time.monotonic()

        try:
            engine = await self._get_engine()
            self.event_logger.store_started(original_uri, type(engine).__name__)

            result = await self.loader.load(original_uri)
            self._check_destroyed()

            manifest = result.manifest
            timeline = manifest.presentation_timeline
            if timeline.is_live():
                raise CannotStoreLiveOfflineError(original_uri)
            self.drm_binder.check_ready(result.drm_engine, original_uri)

            manifest_id = await engine.reserve_manifest_id()
            self._check_destroyed()

            record = ManifestRecord(
                id=manifest_id,
                original_uri=original_uri,
                duration=timeline.duration,
                app_metadata=dict(app_metadata or {}),
            )
            coordinator = DownloadCoordinator(
                engine,
                self.fetcher,
                average_bandwidth=manifest.average_bandwidth(),
                progress_hook=lambda size, fraction: self._report_progress(
                    record, size, fraction
                ),
                abort_check=lambda: self._destroyed,
            )
            for period in manifest.periods:
                period_record = await self._create_period(period, timeline, coordinator)
                record.periods.append(period_record)

            stats = await coordinator.download_all()
            self._check_destroyed()

            self.drm_binder.bind(record, result.drm_engine)
            await engine.put_manifest(record)
            self._check_destroyed()

            content = to_stored_content(record, stats.size)
            self.event_logger.store_completed(
                content.offline_uri,
                original_uri,
                stats.size,
                stats.segments_stored,
                time.monotonic() - start_time,
            )
            return content
        except BaseException as e:
            # Cancellation purges too.
            purged = 0
            if engine is not None:
                segment_ids = coordinator.written_segment_ids if coordinator else []
                purged = await self._purge(engine, manifest_id, segment_ids)
            self.event_logger.store_failed(original_uri, repr(e), purged)
            raise
        finally:
            self._store_in_progress = False
            self._store_idle.set()

    async def _purge(
        self,
        engine: StorageEngine,
        manifest_id: Optional[int],
        segment_ids: List[int],
    ) -> int:
        """Best-effort removal of everything a failed store wrote."""
        purged = 0
        try:
            for segment_id in segment_ids:
                if await engine.remove_segment(segment_id):
                    purged += 1
            if manifest_id is not None:
                await engine.remove_manifest(manifest_id)
        except Exception as e:
            log.warning(f"[yellow]Could not purge partially stored content:[/] {e}")
        return purged

    def _report_progress(self, record: ManifestRecord, size: int, fraction: float):
        callback = self.config.progress_callback
        if callback is None:
            return
        callback(to_stored_content(record, size), fraction)

    async def _select_tracks(self, tracks: List[Track]) -> List[Track]:
        """Runs the custom selection callback, or the built-in policy."""
        callback = self.config.track_selection_callback
        if callback is None:
            return select_tracks(
                tracks,
                self.config.preferred_audio_language,
                self.config.max_sd_height,
            )
        selected = callback(tracks)
        if inspect.isawaitable(selected):
            selected = await selected
        return [t if isinstance(t, Track) else Track.model_validate(t) for t in selected]

    async def _create_period(
        self,
        period: Period,
        timeline: PresentationTimeline,
        coordinator: DownloadCoordinator,
    ) -> PeriodRecord:
        """
        Selects the period's tracks, builds a StreamRecord for each stream they
        use and queues those streams for download.
        """
        selected = await self._select_tracks(get_period_tracks(period))
        variant_ids = {t.id for t in selected if t.type == VARIANT}
        text_ids = {t.id for t in selected if t.type == TEXT}

        if len(variant_ids) > 1:
            log.warning(
                f"[yellow]Multiple variants selected for the period at "
                f"{period.start_time}s ({len(variant_ids)}); this may waste "
                "space and does not enable adaptation offline.[/yellow]"
            )

        streams: Dict[int, StreamRecord] = {}

        def add(stream: Stream) -> StreamRecord:
            stream_record = streams.get(stream.id)
            if stream_record is None:
                stream_record = self._create_stream(stream)
                streams[stream.id] = stream_record
                coordinator.add_stream(
                    stream.type,
                    stream_record,
                    stream,
                    timeline.segment_availability_start,
                )
            return stream_record

        for variant in period.variants:
            if variant.id not in variant_ids:
                continue
            for stream in (variant.audio, variant.video):
                if stream is not None:
                    add(stream).variant_ids.append(variant.id)

        for text_stream in period.text_streams:
            if text_stream.id in text_ids:
                add(text_stream)

        return PeriodRecord(start_time=period.start_time, streams=list(streams.values()))

    @staticmethod
    def _create_stream(stream: Stream) -> StreamRecord:
        return StreamRecord(
            id=stream.id,
            content_type=stream.type,
            mime_type=stream.mime_type,
            codecs=stream.codecs,
            frame_rate=stream.frame_rate,
            kind=stream.kind,
            language=stream.language,
            label=stream.label,
            width=stream.width,
            height=stream.height,
            channels_count=stream.channels_count,
            primary=stream.primary,
            encrypted=stream.encrypted,
            key_id=stream.key_id,
            presentation_time_offset=stream.presentation_time_offset,
        )

    async def list(self) -> List[StoredContent]:
        """Describes every stored piece of content, in engine order."""
        engine = await self._get_engine()
        records: List[ManifestRecord] = []
        await engine.for_each_manifest(records.append)
        self._check_destroyed()

        contents = []
        for record in records:
            size = await self._get_stored_size(engine, record)
            contents.append(to_stored_content(record, size))
        self._check_destroyed()
        return contents

    async def _get_stored_size(self, engine: StorageEngine, record: ManifestRecord) -> int:
        size = 0
        for segment_id in collect_segment_ids(record):
            segment = await engine.get_segment(segment_id)
            if segment is None:
                self.event_logger.segment_missing(
                    manifest_id_to_uri(record.id), segment_id
                )
                continue
            size += len(segment.data)
        return size

    async def remove(self, content: Union[StoredContent, str]) -> None:
        """
        Deletes stored content and every segment it references, then releases
        its DRM sessions.

        Args:
            content: A descriptor returned by `store`/`list`, or its offline URI.

        Raises:
            MalformedOfflineUriError: If the URI cannot be decoded.
            RequestedItemNotFoundError: If nothing is stored under the URI.
        """
        offline_uri = (
            content.offline_uri if isinstance(content, StoredContent) else content
        )
        manifest_id = uri_to_manifest_id(offline_uri)
        if manifest_id is None:
            raise MalformedOfflineUriError(offline_uri)

        engine = await self._get_engine()
        record = await engine.get_manifest(manifest_id)
        self._check_destroyed()
        if record is None:
            raise RequestedItemNotFoundError(offline_uri)

        removed = await remove_manifest_record(engine, record)
        self.event_logger.content_removed(offline_uri, removed)
        await self.drm_binder.release(record)

    async def destroy(self) -> None:
        """
        Aborts any in-flight store, waits for it to settle and releases the
        storage engine. Safe to call more than once.
        """
        self._destroyed = True
        await self._store_idle.wait()
        async with self._engine_lock:
            if self._engine is not None:
                engine, self._engine = self._engine, None
                await engine.destroy()
                log.debug("Storage engine released.")
