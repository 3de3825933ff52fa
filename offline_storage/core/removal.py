"""
Cascading deletion of a stored manifest and the segments it references.
"""

import logging

from offline_storage.models.records import ManifestRecord
from offline_storage.storage.engine import StorageEngine
from offline_storage.utils.offline_uri import uri_to_segment_id

log = logging.getLogger(__name__)


def collect_segment_ids(record: ManifestRecord) -> list[int]:
    """
    Walks periods, streams and segments (init segments included) and returns
    every decodable segment id, in reference order.
    """
    segment_ids = []
    for uri in record.segment_uris():
        segment_id = uri_to_segment_id(uri)
        if segment_id is None:
            log.warning(
                f"[yellow]Manifest {record.id} references a malformed segment URI "
                f"'{uri}'; skipping it.[/yellow]"
            )
            continue
        segment_ids.append(segment_id)
    return segment_ids


async def remove_manifest_record(engine: StorageEngine, record: ManifestRecord) -> int:
    """
    Deletes every segment of `record`, then the record itself.

    Segments that are already gone are skipped silently. Returns the number of
    segment records actually deleted.
    """
    removed = 0
    for segment_id in collect_segment_ids(record):
        if await engine.remove_segment(segment_id):
            removed += 1
        else:
            log.debug(f"Segment {segment_id} of manifest {record.id} was already gone.")
    await engine.remove_manifest(record.id)
    return removed
