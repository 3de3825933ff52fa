"""
Pydantic models for the records a storage engine persists.

A ManifestRecord owns its PeriodRecords and StreamRecords; StreamRecords refer
to SegmentRecords only through offline segment URIs.
"""

import math
from typing import Any

from pydantic import BaseModel, Field


class DrmInfo(BaseModel):
    """Key-system metadata negotiated by the DRM context at store time."""

    key_system: str
    license_server_uri: str = ""
    persistent_state_required: bool = False
    distinctive_identifier_required: bool = False
    key_ids: list[str] | None = None
    init_data: list[dict[str, Any]] | None = None
    server_certificate: str | None = None
    audio_robustness: str = ""
    video_robustness: str = ""


class SegmentInfo(BaseModel):
    """A stored media segment's timing and offline URI."""

    start_time: float
    end_time: float
    uri: str


class StreamRecord(BaseModel):
    """One persisted elementary stream."""

    id: int
    content_type: str
    mime_type: str = ""
    codecs: str = ""
    frame_rate: float | None = None
    kind: str | None = None
    language: str = ""
    label: str | None = None
    width: int | None = None
    height: int | None = None
    channels_count: int | None = None
    primary: bool = False
    encrypted: bool = False
    key_id: str | None = None
    presentation_time_offset: float = 0
    init_segment_uri: str | None = None
    segments: list[SegmentInfo] = Field(default_factory=list)
    variant_ids: list[int] = Field(default_factory=list)


class PeriodRecord(BaseModel):
    """A persisted period with one StreamRecord per stored stream."""

    start_time: float = 0
    streams: list[StreamRecord] = Field(default_factory=list)


class ManifestRecord(BaseModel):
    """The persisted unit of stored content."""

    id: int | None = None
    original_uri: str
    duration: float
    periods: list[PeriodRecord] = Field(default_factory=list)
    session_ids: list[str] = Field(default_factory=list)
    drm_info: DrmInfo | None = None
    app_metadata: dict[str, Any] = Field(default_factory=dict)
    expiration: float = math.inf

    def segment_uris(self) -> list[str]:
        """All segment URIs referenced by this record, init segments included."""
        uris = []
        for period in self.periods:
            for stream in period.streams:
                if stream.init_segment_uri:
                    uris.append(stream.init_segment_uri)
                uris.extend(segment.uri for segment in stream.segments)
        return uris


class SegmentRecord(BaseModel):
    """Raw bytes of one stored segment."""

    id: int
    data: bytes
