import logging

import pytest

from helpers import FakeSessionReleaser, ManifestRecordBuilder, count_records
from offline_storage.core.removal import collect_segment_ids, remove_manifest_record
from offline_storage.core.storage_manager import StorageManager
from offline_storage.exceptions import (
    MalformedOfflineUriError,
    OperationAbortedError,
    RequestedItemNotFoundError,
)
from offline_storage.models import (
    ManifestRecord,
    PeriodRecord,
    SegmentInfo,
    StoredContent,
    StreamRecord,
)
from offline_storage.utils.offline_uri import manifest_id_to_uri, segment_id_to_uri


def four_segments(builder):
    return builder.segment(0, 2).segment(2, 4).segment(4, 6).segment(6, 8)


@pytest.mark.asyncio
async def test_deletes_everything(manager, engine):
    record = await four_segments(ManifestRecordBuilder(engine).period().stream()).build()
    assert await count_records(engine) == (1, 4)

    await manager.remove(manifest_id_to_uri(record.id))

    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_deletes_init_segments(manager, engine):
    record = await four_segments(
        ManifestRecordBuilder(engine).period().stream().init_segment()
    ).build()
    assert await count_records(engine) == (1, 5)

    await manager.remove(manifest_id_to_uri(record.id))

    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_deletes_multiple_streams(manager, engine):
    builder = four_segments(ManifestRecordBuilder(engine).period().stream())
    record = await four_segments(builder.stream()).build()
    assert await count_records(engine) == (1, 8)

    await manager.remove(manifest_id_to_uri(record.id))

    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_deletes_multiple_periods(manager, engine):
    builder = four_segments(ManifestRecordBuilder(engine).period().stream())
    record = await four_segments(builder.period().stream()).build()
    assert await count_records(engine) == (1, 8)

    await manager.remove(manifest_id_to_uri(record.id))

    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_deletes_content_with_temporary_license(manager, engine):
    manager.configure(use_persistent_license=False)
    record = await four_segments(ManifestRecordBuilder(engine).period().stream()).build()

    await manager.remove(manifest_id_to_uri(record.id))

    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_accepts_stored_content_descriptor(manager, engine):
    await four_segments(ManifestRecordBuilder(engine).period().stream()).build()
    [content] = await manager.list()
    assert isinstance(content, StoredContent)

    await manager.remove(content)

    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_keeps_other_manifests_segments(manager, engine):
    first = await four_segments(ManifestRecordBuilder(engine).period().stream()).build()
    second = await four_segments(ManifestRecordBuilder(engine).period().stream()).build()
    assert await count_records(engine) == (2, 8)

    await manager.remove(manifest_id_to_uri(first.id))

    assert await count_records(engine) == (1, 4)
    for segment_id in collect_segment_ids(second):
        assert await engine.get_segment(segment_id) is not None


@pytest.mark.asyncio
async def test_tolerates_missing_segments(manager, engine):
    def point_at_missing_segment(stream):
        stream.segments[0].uri = segment_id_to_uri(1253)

    record = await four_segments(ManifestRecordBuilder(engine).period().stream()).on_stream(
        point_at_missing_segment
    ).build()
    assert await count_records(engine) == (1, 4)

    await manager.remove(manifest_id_to_uri(record.id))

    # The orphaned segment is not referenced and therefore survives.
    assert await count_records(engine) == (0, 1)


@pytest.mark.asyncio
async def test_remove_manifest_record_counts_deleted_segments(engine):
    def point_at_missing_segment(stream):
        stream.segments[0].uri = segment_id_to_uri(1253)

    record = await four_segments(ManifestRecordBuilder(engine).period().stream()).on_stream(
        point_at_missing_segment
    ).build()

    assert await remove_manifest_record(engine, record) == 3
    assert await engine.get_manifest(record.id) is None


def test_collect_segment_ids_skips_malformed_uris(caplog):
    stream = StreamRecord(
        id=0,
        content_type="video",
        init_segment_uri="offline:segment/7",
        segments=[
            SegmentInfo(start_time=0, end_time=1, uri="offline:segment/8"),
            SegmentInfo(start_time=1, end_time=2, uri="http://example.com/seg"),
        ],
    )
    record = ManifestRecord(
        id=3, original_uri="", duration=2, periods=[PeriodRecord(streams=[stream])]
    )

    with caplog.at_level(logging.WARNING):
        assert collect_segment_ids(record) == [7, 8]
    assert any("malformed" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_raises_not_found(manager):
    with pytest.raises(RequestedItemNotFoundError) as exc_info:
        await manager.remove(manifest_id_to_uri(999))

    assert exc_info.value == RequestedItemNotFoundError("offline:manifest/999")


@pytest.mark.asyncio
async def test_raises_malformed_uri(manager):
    with pytest.raises(MalformedOfflineUriError) as exc_info:
        await manager.remove("foo:bar")

    assert exc_info.value == MalformedOfflineUriError("foo:bar")


@pytest.mark.asyncio
async def test_releases_sessions_after_deleting(loader, fetcher, engine_factory, engine):
    releaser = FakeSessionReleaser()
    manager = StorageManager(
        loader, fetcher, engine_factory=engine_factory, session_releaser=releaser
    )
    record = await ManifestRecordBuilder(engine).period().stream().segment(0, 2).build()
    record.session_ids = ["abcd"]
    await engine.put_manifest(record)

    await manager.remove(manifest_id_to_uri(record.id))

    assert releaser.released == [(None, ["abcd"])]
    assert await count_records(engine) == (0, 0)


@pytest.mark.asyncio
async def test_session_release_failure_is_not_raised(
    loader, fetcher, engine_factory, engine, caplog
):
    releaser = FakeSessionReleaser(error=RuntimeError("license server unreachable"))
    manager = StorageManager(
        loader, fetcher, engine_factory=engine_factory, session_releaser=releaser
    )
    record = await ManifestRecordBuilder(engine).period().stream().segment(0, 2).build()
    record.session_ids = ["abcd"]
    await engine.put_manifest(record)

    with caplog.at_level(logging.WARNING):
        await manager.remove(manifest_id_to_uri(record.id))

    assert await count_records(engine) == (0, 0)
    assert any("DRM sessions" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_remove_after_destroy_is_aborted(manager, engine):
    record = await ManifestRecordBuilder(engine).period().stream().build()
    await manager.destroy()

    with pytest.raises(OperationAbortedError):
        await manager.remove(manifest_id_to_uri(record.id))
