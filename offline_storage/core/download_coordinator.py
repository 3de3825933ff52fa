"""
Downloads and persists the segments of every stream chosen for storage.

Streams are queued per content type. Each content type gets one task that
walks its streams and their segments strictly in order; tasks of different
content types run concurrently.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from offline_storage.exceptions import OperationAbortedError
from offline_storage.media.interfaces import SegmentFetcher
from offline_storage.models.manifest import SegmentReference, Stream
from offline_storage.models.records import SegmentInfo, StreamRecord
from offline_storage.models.stats import StoreStats
from offline_storage.storage.engine import StorageEngine
from offline_storage.utils.offline_uri import segment_id_to_uri

log = logging.getLogger(__name__)

ProgressHook = Callable[[int, float], None]


@dataclass
class _QueuedStream:
    record: StreamRecord
    stream: Stream
    start_time: float


def iter_segment_references(
    stream: Stream, start_time: float
) -> Iterator[SegmentReference]:
    """Lazily yields a stream's segment references from `start_time` onwards."""
    position = stream.find_segment_position(start_time)
    while position is not None:
        ref = stream.get_segment_reference(position)
        if ref is None:
            return
        yield ref
        position += 1


class DownloadCoordinator:
    """
    Drives segment downloads for one store operation.

    Attributes:
        stats: Running size and progress totals.
        written_segment_ids: Ids of every segment persisted so far, so the
        caller can purge them if the store fails.
    """

    def __init__(
        self,
        engine: StorageEngine,
        fetcher: SegmentFetcher,
        average_bandwidth: float = 0.0,
        progress_hook: Optional[ProgressHook] = None,
        abort_check: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            engine: Where segment records are written.
            fetcher: Fetches segment bytes.
            average_bandwidth: Manifest-wide mean bandwidth in bits per second,
            used to estimate segments of streams that declare none.
            progress_hook: Called with (size, fraction) after every segment.
            abort_check: Returns True once the store must be abandoned.
        """
        self.engine = engine
        self.fetcher = fetcher
        self.average_bandwidth = average_bandwidth
        self.progress_hook = progress_hook
        self.abort_check = abort_check
        self.stats = StoreStats()
        self.written_segment_ids: list[int] = []
        self._queues: dict[str, list[_QueuedStream]] = {}
        self._failed = False
        self._pending_writes: set[asyncio.Future] = set()

    def add_stream(
        self,
        content_type: str,
        record: StreamRecord,
        stream: Stream,
        start_time: float = 0,
    ) -> None:
        """Queues a stream behind any earlier stream of the same content type."""
        self._queues.setdefault(content_type, []).append(
            _QueuedStream(record, stream, start_time)
        )

    def _check_aborted(self) -> None:
        if self._failed or (self.abort_check and self.abort_check()):
            raise OperationAbortedError()

    def _on_segment_written(self, write: asyncio.Future) -> None:
        self._pending_writes.discard(write)
        if not write.cancelled() and write.exception() is None:
            self.written_segment_ids.append(write.result())

    def _estimate(self, stream: Stream, ref: SegmentReference) -> float:
        """Estimated bytes of a segment without a byte range."""
        bandwidth = stream.bandwidth or self.average_bandwidth
        return ref.duration * bandwidth / 8

    def _plan(self) -> None:
        """Precomputes the size and progress totals before any download."""
        for queue in self._queues.values():
            for queued in queue:
                init = queued.stream.init_segment_reference
                if init is not None:
                    self.stats.add_pending(init.byte_length, 0.0)
                for ref in iter_segment_references(queued.stream, queued.start_time):
                    self.stats.add_pending(
                        ref.byte_length, self._estimate(queued.stream, ref)
                    )
        log.debug(
            f"Queued {self.stats.segments_total} segments across "
            f"{len(self._queues)} content types "
            f"(~{self.stats.total:.0f} bytes estimated)."
        )

    async def download_all(self) -> StoreStats:
        """
        Downloads every queued segment.

        The first failure cancels the remaining content types and propagates
        unchanged. Segment writes already handed to the engine are awaited
        first, so `written_segment_ids` covers everything that was persisted.
        """
        self._check_aborted()
        self._plan()

        tasks = [
            asyncio.create_task(self._download_content_type(content_type, queue))
            for content_type, queue in self._queues.items()
        ]
        if not tasks:
            return self.stats

        try:
            await asyncio.gather(*tasks)
        except BaseException:
            self._failed = True
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if self._pending_writes:
                await asyncio.gather(*self._pending_writes, return_exceptions=True)
            raise
        return self.stats

    async def _download_content_type(
        self, content_type: str, queue: list[_QueuedStream]
    ) -> None:
        for queued in queue:
            await self._download_stream(queued)
        log.debug(f"Finished downloading {content_type} streams.")

    async def _download_stream(self, queued: _QueuedStream) -> None:
        stream, record = queued.stream, queued.record

        init = stream.init_segment_reference
        if init is not None:
            segment_id = await self._download_segment(
                init.uris, init.start_byte, init.end_byte, init.byte_length, 0.0
            )
            record.init_segment_uri = segment_id_to_uri(segment_id)

        for ref in iter_segment_references(stream, queued.start_time):
            segment_id = await self._download_segment(
                ref.uris,
                ref.start_byte,
                ref.end_byte,
                ref.byte_length,
                self._estimate(stream, ref),
            )
            record.segments.append(
                SegmentInfo(
                    start_time=ref.start_time,
                    end_time=ref.end_time,
                    uri=segment_id_to_uri(segment_id),
                )
            )

    async def _download_segment(
        self,
        uris: Sequence[str],
        start_byte: int,
        end_byte: Optional[int],
        byte_length: Optional[int],
        estimate: float,
    ) -> int:
        data = await self.fetcher.fetch(uris, start_byte, end_byte)
        self._check_aborted()

        # Shielded: a cancelled task must not lose the id of a segment the
        # engine goes on to persist.
        write = asyncio.ensure_future(self.engine.put_segment(data))
        self._pending_writes.add(write)
        write.add_done_callback(self._on_segment_written)
        segment_id = await asyncio.shield(write)
        self._check_aborted()

        self.stats.record_segment(byte_length, estimate, len(data))
        if self.progress_hook:
            self.progress_hook(self.stats.size, self.stats.fraction)
        return segment_id
