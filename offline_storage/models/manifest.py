"""
In-memory manifest structures handed over by the player's manifest loader.

These describe the remote content: periods, variants, elementary streams and
the segment references each stream can produce. They are never persisted;
`offline_storage.models.records` holds the persisted counterparts.
"""

import math
from dataclasses import dataclass, field
from typing import Iterator, List, Optional


class ContentType:
    """Coarse stream categories used to partition concurrent downloads."""

    AUDIO = "audio"
    VIDEO = "video"
    TEXT = "text"


@dataclass
class InitSegmentReference:
    """Location of a stream's initialization segment."""

    uris: List[str]
    start_byte: int = 0
    end_byte: Optional[int] = None

    @property
    def byte_length(self) -> Optional[int]:
        if self.end_byte is None:
            return None
        return self.end_byte - self.start_byte + 1


@dataclass
class SegmentReference:
    """Location and timing of one media segment."""

    position: int
    start_time: float
    end_time: float
    uris: List[str]
    start_byte: int = 0
    end_byte: Optional[int] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def byte_length(self) -> Optional[int]:
        """Exact size in bytes when the reference carries an explicit range."""
        if self.end_byte is None:
            return None
        return self.end_byte - self.start_byte + 1


class SegmentIndex:
    """An ordered, position-addressable list of segment references."""

    def __init__(self, references: Optional[List[SegmentReference]] = None):
        self._references: List[SegmentReference] = []
        if references:
            self.merge(references)

    def merge(self, references: List[SegmentReference]) -> None:
        """Adds references, keeping the index sorted by start time."""
        by_position = {ref.position: ref for ref in self._references}
        by_position.update({ref.position: ref for ref in references})
        self._references = sorted(by_position.values(), key=lambda r: r.start_time)

    def find(self, time: float) -> Optional[int]:
        """
        Returns the position of the segment containing `time`, the first
        position if `time` precedes the whole index, or None.
        """
        for ref in reversed(self._references):
            if ref.start_time <= time < ref.end_time:
                return ref.position
        if self._references and time < self._references[0].start_time:
            return self._references[0].position
        return None

    def get(self, position: int) -> Optional[SegmentReference]:
        """Returns the reference at `position`, or None past either end."""
        if not self._references:
            return None
        index = position - self._references[0].position
        if index < 0 or index >= len(self._references):
            return None
        return self._references[index]

    def __iter__(self) -> Iterator[SegmentReference]:
        return iter(self._references)

    def __len__(self) -> int:
        return len(self._references)


@dataclass
class Stream:
    """One elementary stream of a period."""

    id: int
    type: str
    mime_type: str = ""
    codecs: str = ""
    bandwidth: Optional[int] = None
    language: str = ""
    label: Optional[str] = None
    kind: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    frame_rate: Optional[float] = None
    channels_count: Optional[int] = None
    primary: bool = False
    encrypted: bool = False
    key_id: Optional[str] = None
    presentation_time_offset: float = 0
    init_segment_reference: Optional[InitSegmentReference] = None
    segment_index: SegmentIndex = field(default_factory=SegmentIndex)

    def find_segment_position(self, time: float) -> Optional[int]:
        return self.segment_index.find(time)

    def get_segment_reference(self, position: int) -> Optional[SegmentReference]:
        return self.segment_index.get(position)


@dataclass
class Variant:
    """A playable pairing of at most one audio and one video stream."""

    id: int
    language: str = ""
    bandwidth: int = 0
    primary: bool = False
    audio: Optional[Stream] = None
    video: Optional[Stream] = None


@dataclass
class Period:
    """A time-bounded section of the presentation."""

    start_time: float = 0
    variants: List[Variant] = field(default_factory=list)
    text_streams: List[Stream] = field(default_factory=list)


@dataclass
class PresentationTimeline:
    """Timing facts about the whole presentation."""

    duration: float = math.inf
    is_static: bool = True
    segment_availability_start: float = 0

    def is_live(self) -> bool:
        """True for dynamic or unbounded presentations, which cannot be stored."""
        return not self.is_static or math.isinf(self.duration)


@dataclass
class Manifest:
    """A parsed manifest as produced by the player."""

    presentation_timeline: PresentationTimeline
    periods: List[Period] = field(default_factory=list)

    def average_bandwidth(self) -> float:
        """Mean variant bandwidth (bits per second) across all periods."""
        bandwidths = [
            variant.bandwidth
            for period in self.periods
            for variant in period.variants
            if variant.bandwidth
        ]
        if not bandwidths:
            return 0.0
        return sum(bandwidths) / len(bandwidths)
