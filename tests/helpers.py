"""
Fakes for the player-side collaborators, plus manifest and record builders.
"""

import asyncio
import math
from typing import Any, Callable, Optional, Sequence

from offline_storage.media.interfaces import LoadResult
from offline_storage.models import (
    ContentType,
    DrmInfo,
    InitSegmentReference,
    Manifest,
    ManifestRecord,
    Period,
    PeriodRecord,
    PresentationTimeline,
    SegmentIndex,
    SegmentInfo,
    SegmentReference,
    Stream,
    StreamRecord,
    Variant,
)
from offline_storage.storage.engine import StorageEngine, StorageEngineFactory
from offline_storage.utils.offline_uri import segment_id_to_uri


class FakeDrmEngine:
    def __init__(
        self,
        drm_info: Optional[DrmInfo] = None,
        session_ids: Sequence[str] = (),
        expiration: float = math.inf,
    ):
        self.drm_info = drm_info
        self.session_ids = list(session_ids)
        self.expiration = expiration

    def get_drm_info(self) -> Optional[DrmInfo]:
        return self.drm_info

    def get_session_ids(self) -> list[str]:
        return self.session_ids

    def get_expiration(self) -> float:
        return self.expiration


class FakeLoader:
    """Hands back a fixed manifest after yielding once to the event loop."""

    def __init__(self, manifest: Manifest, drm_engine: FakeDrmEngine):
        self.manifest = manifest
        self.drm_engine = drm_engine
        self.calls: list[str] = []

    async def load(self, original_uri: str) -> LoadResult:
        self.calls.append(original_uri)
        await asyncio.sleep(0)
        return LoadResult(self.manifest, self.drm_engine)


class FakeFetcher:
    """
    Serves bytes from a response map keyed by the first URI.

    `delay_next()` returns a future the next fetch waits on; resolve it to let
    the fetch continue or set an exception on it to make the fetch fail.
    """

    def __init__(self, responses: Optional[dict[str, bytes]] = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[tuple[str, ...], int, Optional[int]]] = []
        self._delays: list[asyncio.Future] = []

    def delay_next(self) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._delays.append(future)
        return future

    async def fetch(
        self, uris: Sequence[str], start_byte: int = 0, end_byte: Optional[int] = None
    ) -> bytes:
        self.calls.append((tuple(uris), start_byte, end_byte))
        if self._delays:
            await self._delays.pop(0)
        return self.responses[uris[0]]


class FakeSessionReleaser:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.released: list[tuple[Optional[DrmInfo], list[str]]] = []

    async def release_sessions(self, drm_info, session_ids):
        if self.error:
            raise self.error
        self.released.append((drm_info, list(session_ids)))


class FixedEngineFactory(StorageEngineFactory):
    """Always hands out the same engine instance so tests can inspect it."""

    def __init__(self, engine: StorageEngine, supported: bool = True):
        super().__init__(type(engine))
        self.engine = engine
        self.supported = supported
        self.created = 0

    def is_supported(self) -> bool:
        return self.supported

    async def create(self) -> StorageEngine:
        self.created += 1
        await self.engine.init()
        return self.engine


async def wait_until(predicate: Callable[[], bool], turns: int = 100) -> None:
    """Yields to the event loop until `predicate` holds."""
    for _ in range(turns):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never met")


async def count_records(engine: StorageEngine) -> tuple[int, int]:
    """Returns (manifest count, segment count)."""
    manifests: list = []
    segments: list = []
    await engine.for_each_manifest(manifests.append)
    await engine.for_each_segment(segments.append)
    return len(manifests), len(segments)


def ref(
    position: int,
    start: float,
    end: float,
    uri: str,
    start_byte: int = 0,
    end_byte: Optional[int] = None,
) -> SegmentReference:
    return SegmentReference(position, start, end, [uri], start_byte, end_byte)


def make_stream(
    stream_id: int,
    content_type: str,
    references: Sequence[SegmentReference] = (),
    init_uri: Optional[str] = None,
    **kwargs: Any,
) -> Stream:
    init = InitSegmentReference([init_uri]) if init_uri else None
    return Stream(
        id=stream_id,
        type=content_type,
        init_segment_reference=init,
        segment_index=SegmentIndex(list(references)),
        **kwargs,
    )


def make_basic_manifest(duration: float = 20) -> Manifest:
    """One period with a single English variant: video 1 and audio 2."""
    video = make_stream(
        1, ContentType.VIDEO, width=100, height=200, bandwidth=80, mime_type="video/mp4"
    )
    audio = make_stream(
        2, ContentType.AUDIO, language="en", bandwidth=80, mime_type="audio/mp4"
    )
    variant = Variant(id=0, language="en", bandwidth=160, audio=audio, video=video)
    return Manifest(
        PresentationTimeline(duration=duration),
        [Period(start_time=0, variants=[variant])],
    )


def make_selection_manifest() -> Manifest:
    """
    Variants in several languages and resolutions plus six text streams.

    Spanish is primary; English has exact variants for en, en-US and en-GB;
    French only has fr-CA; Swahili has an HD variant, a small SD variant and
    three 720x480 variants at low, mid and high bandwidth.
    """

    def audio(stream_id, language, primary=False, kind=None):
        return make_stream(
            stream_id, ContentType.AUDIO, language=language, primary=primary, kind=kind
        )

    def video(stream_id, width, height):
        return make_stream(stream_id, ContentType.VIDEO, width=width, height=height)

    small = video(200, 100, 200)
    largest_sd = video(404, 720, 480)
    sw_audio = audio(400, "sw")
    variants = [
        Variant(10, "es", 160, primary=True, audio=audio(101, "es", True), video=video(100, 100, 200)),
        Variant(20, "en", 160, audio=audio(201, "en"), video=small),
        Variant(21, "en-US", 160, audio=audio(202, "en-US"), video=small),
        Variant(22, "en-GB", 160, audio=audio(203, "en-GB"), video=small),
        Variant(30, "fr-CA", 160, audio=audio(301, "fr-CA"), video=video(300, 100, 200)),
        Variant(40, "sw", 160, audio=sw_audio, video=video(401, 100, 200)),
        Variant(41, "sw", 160, audio=sw_audio, video=video(402, 1080, 720)),
        Variant(42, "sw", 100, audio=audio(403, "sw", kind="low"), video=largest_sd),
        Variant(43, "sw", 200, audio=audio(405, "sw", kind="mid"), video=largest_sd),
        Variant(44, "sw", 300, audio=audio(406, "sw", kind="high"), video=largest_sd),
    ]
    text_streams = [
        make_stream(stream_id, ContentType.TEXT, language=language, mime_type="text/vtt")
        for stream_id, language in [
            (90, "es"), (91, "en"), (92, "ar"), (93, "el"), (94, "he"), (95, "zh"),
        ]
    ]
    return Manifest(
        PresentationTimeline(duration=20),
        [Period(start_time=0, variants=variants, text_streams=text_streams)],
    )


class ManifestRecordBuilder:
    """
    Writes a manifest record and its segments straight into an engine.

    Usage:
        record = await (
            ManifestRecordBuilder(engine)
            .period().stream().init_segment().segment(0, 2).segment(2, 4)
            .build()
        )
    """

    def __init__(self, engine: StorageEngine):
        self.engine = engine
        self.app_metadata: dict[str, Any] = {}
        self._periods: list[list[dict[str, Any]]] = []
        self._next_stream_id = 0

    def metadata(self, **app_metadata: Any) -> "ManifestRecordBuilder":
        self.app_metadata.update(app_metadata)
        return self

    def period(self) -> "ManifestRecordBuilder":
        self._periods.append([])
        return self

    def stream(self) -> "ManifestRecordBuilder":
        self._periods[-1].append(
            {"id": self._next_stream_id, "init": False, "segments": [], "hooks": []}
        )
        self._next_stream_id += 1
        return self

    def init_segment(self) -> "ManifestRecordBuilder":
        self._periods[-1][-1]["init"] = True
        return self

    def segment(self, start: float, end: float, size: int = 10) -> "ManifestRecordBuilder":
        self._periods[-1][-1]["segments"].append((start, end, size))
        return self

    def on_stream(self, hook: Callable[[StreamRecord], None]) -> "ManifestRecordBuilder":
        self._periods[-1][-1]["hooks"].append(hook)
        return self

    async def build(self) -> ManifestRecord:
        periods = []
        for index, streams in enumerate(self._periods):
            period = PeriodRecord(start_time=index * 10)
            for plan in streams:
                stream = StreamRecord(
                    id=plan["id"],
                    content_type=ContentType.VIDEO,
                    variant_ids=[plan["id"]],
                )
                if plan["init"]:
                    segment_id = await self.engine.put_segment(b"init")
                    stream.init_segment_uri = segment_id_to_uri(segment_id)
                for start, end, size in plan["segments"]:
                    segment_id = await self.engine.put_segment(bytes(size))
                    stream.segments.append(
                        SegmentInfo(
                            start_time=start,
                            end_time=end,
                            uri=segment_id_to_uri(segment_id),
                        )
                    )
                for hook in plan["hooks"]:
                    hook(stream)
                period.streams.append(stream)
            periods.append(period)

        record = ManifestRecord(
            original_uri="fake://stored",
            duration=20,
            periods=periods,
            app_metadata=self.app_metadata,
        )
        record.id = await self.engine.put_manifest(record)
        return record
