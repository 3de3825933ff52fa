"""
Dataclass tracking byte totals and progress for a single store operation.
"""

from dataclasses import dataclass


@dataclass
class StoreStats:
    """
    Running totals for one store operation.

    `size` is what callers see as the content size: it starts at the sum of all
    explicit byte ranges and grows by the real byte count of every downloaded
    segment that had no range. `bytes_done` / `bytes_estimated` drive the
    progress fraction; segments without a range count with their estimate.
    """

    size: int = 0
    given_bytes_total: int = 0
    estimated_bytes_total: float = 0.0
    bytes_done: float = 0.0
    segments_total: int = 0
    segments_stored: int = 0
    bytes_downloaded: int = 0

    def add_pending(self, byte_length: int | None, estimate: float) -> None:
        """Registers a queued segment before any download starts."""
        self.segments_total += 1
        if byte_length is not None:
            self.given_bytes_total += byte_length
            self.size += byte_length
        else:
            self.estimated_bytes_total += estimate

    def record_segment(
        self, byte_length: int | None, estimate: float, downloaded: int
    ) -> None:
        """Accounts for one segment that has been fetched and persisted."""
        self.segments_stored += 1
        self.bytes_downloaded += downloaded
        if byte_length is not None:
            self.bytes_done += byte_length
        else:
            self.size += downloaded
            self.bytes_done += estimate

    @property
    def total(self) -> float:
        return self.given_bytes_total + self.estimated_bytes_total

    @property
    def fraction(self) -> float:
        """Progress in [0, 1]; exactly 1.0 once every queued segment is stored."""
        if self.segments_stored >= self.segments_total:
            return 1.0
        if self.total <= 0:
            return 0.0
        return min(self.bytes_done / self.total, 1.0)
