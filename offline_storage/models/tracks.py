"""
Track and StoredContent models, plus conversions from manifests and records.

Tracks are what track-selection policies see and what callers get back in a
StoredContent descriptor. Tracks rebuilt from stored records carry no
bandwidth information.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from offline_storage.models.manifest import ContentType, Period, Stream, Variant
from offline_storage.models.records import ManifestRecord, PeriodRecord, StreamRecord
from offline_storage.utils.offline_uri import manifest_id_to_uri

VARIANT = "variant"
TEXT = "text"


class Track(BaseModel):
    """A selectable variant or text track."""

    id: int
    type: str
    bandwidth: int = 0
    language: str = ""
    label: Optional[str] = None
    kind: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    frame_rate: Optional[float] = None
    mime_type: str = ""
    codecs: str = ""
    audio_codec: Optional[str] = None
    video_codec: Optional[str] = None
    primary: bool = False
    audio_id: Optional[int] = None
    video_id: Optional[int] = None
    channels_count: Optional[int] = None
    audio_bandwidth: Optional[int] = None
    video_bandwidth: Optional[int] = None


class StoredContent(BaseModel):
    """Read-only description of a piece of stored content."""

    offline_uri: str
    original_manifest_uri: str
    duration: float
    size: int
    expiration: float
    tracks: list[Track] = Field(default_factory=list)
    app_metadata: dict[str, Any] = Field(default_factory=dict)


def _variant_track(
    variant_id: int,
    language: str,
    bandwidth: int,
    primary: bool,
    audio: Stream | StreamRecord | None,
    video: Stream | StreamRecord | None,
    audio_bandwidth: Optional[int] = None,
    video_bandwidth: Optional[int] = None,
) -> Track:
    codecs = ", ".join(s.codecs for s in (video, audio) if s is not None and s.codecs)
    return Track(
        id=variant_id,
        type=VARIANT,
        bandwidth=bandwidth,
        language=language,
        label=audio.label if audio else None,
        kind=audio.kind if audio else None,
        width=video.width if video else None,
        height=video.height if video else None,
        frame_rate=video.frame_rate if video else None,
        mime_type=(video or audio).mime_type if (video or audio) else "",
        codecs=codecs,
        audio_codec=audio.codecs if audio else None,
        video_codec=video.codecs if video else None,
        primary=primary,
        audio_id=audio.id if audio else None,
        video_id=video.id if video else None,
        channels_count=audio.channels_count if audio else None,
        audio_bandwidth=audio_bandwidth,
        video_bandwidth=video_bandwidth,
    )


def _text_track(stream: Stream | StreamRecord) -> Track:
    return Track(
        id=stream.id,
        type=TEXT,
        language=stream.language,
        label=stream.label,
        kind=stream.kind,
        mime_type=stream.mime_type,
        codecs=stream.codecs,
        primary=stream.primary,
    )


def variant_to_track(variant: Variant) -> Track:
    """Builds the track a selection policy sees for a manifest variant."""
    return _variant_track(
        variant.id,
        variant.language,
        variant.bandwidth,
        variant.primary,
        variant.audio,
        variant.video,
        audio_bandwidth=variant.audio.bandwidth if variant.audio else None,
        video_bandwidth=variant.video.bandwidth if variant.video else None,
    )


def get_period_tracks(period: Period) -> list[Track]:
    """All variant tracks followed by all text tracks of a period."""
    tracks = [variant_to_track(v) for v in period.variants]
    tracks.extend(_text_track(s) for s in period.text_streams)
    return tracks


def get_stored_tracks(period: PeriodRecord) -> list[Track]:
    """Reconstructs tracks from a stored period, pairing streams by variant id."""
    audio_by_variant: dict[int, StreamRecord] = {}
    video_by_variant: dict[int, StreamRecord] = {}
    text_streams = []
    variant_ids: list[int] = []

    for stream in period.streams:
        if stream.content_type == ContentType.TEXT:
            text_streams.append(stream)
            continue
        target = (
            audio_by_variant
            if stream.content_type == ContentType.AUDIO
            else video_by_variant
        )
        for variant_id in stream.variant_ids:
            target[variant_id] = stream
            if variant_id not in variant_ids:
                variant_ids.append(variant_id)

    tracks = []
    for variant_id in variant_ids:
        audio = audio_by_variant.get(variant_id)
        video = video_by_variant.get(variant_id)
        tracks.append(
            _variant_track(
                variant_id,
                audio.language if audio else "",
                0,
                bool((audio and audio.primary) or (video and video.primary)),
                audio,
                video,
            )
        )
    tracks.extend(_text_track(s) for s in text_streams)
    return tracks


def to_stored_content(record: ManifestRecord, size: int) -> StoredContent:
    """Projects a manifest record into the descriptor returned to callers."""
    tracks = get_stored_tracks(record.periods[0]) if record.periods else []
    return StoredContent(
        offline_uri=manifest_id_to_uri(record.id),
        original_manifest_uri=record.original_uri,
        duration=record.duration,
        size=size,
        expiration=record.expiration,
        tracks=tracks,
        app_metadata=record.app_metadata,
    )
