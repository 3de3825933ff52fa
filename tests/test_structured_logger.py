import json
import logging

import pytest
from rich.logging import RichHandler

from helpers import FakeDrmEngine, FakeFetcher, FakeLoader, FixedEngineFactory, make_basic_manifest
from offline_storage.core.storage_manager import StorageManager
from offline_storage.exceptions import CannotStoreLiveOfflineError
from offline_storage.storage.memory import MemoryStorageEngine
from offline_storage.utils.log_setup import configure_logging
from offline_storage.utils.structured_logger import (
    StorageEventLogger,
    StructuredLogger,
    create_structured_logger,
)


def read_events(log_dir):
    [path] = list(log_dir.glob("offline_storage_*.jsonl"))
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_writes_json_lines_with_session_context(tmp_path):
    with StructuredLogger("offline_storage.test", log_dir=tmp_path, enable_console=False) as logger:
        logger.info("store_started", original_uri="fake://a")
        logger.error("store_failed", original_uri="fake://a", error="boom")

    events = read_events(tmp_path)
    assert [e["event"] for e in events] == ["store_started", "store_failed"]
    assert [e["level"] for e in events] == ["INFO", "ERROR"]
    assert events[0]["original_uri"] == "fake://a"
    assert events[0]["session_id"] == events[1]["session_id"]
    assert "start_time" in events[0]


def test_console_only_by_default(caplog):
    base, events = create_structured_logger()
    assert base.enable_json is False

    with caplog.at_level(logging.INFO, logger="offline_storage"):
        events.content_removed("offline:manifest/3", 4)

    assert "[content_removed] offline_uri=offline:manifest/3 segments_removed=4" in caplog.text


@pytest.mark.asyncio
async def test_manager_emits_store_and_remove_events(tmp_path):
    base = StructuredLogger("offline_storage", log_dir=tmp_path, enable_console=False)
    engine = MemoryStorageEngine()
    manager = StorageManager(
        FakeLoader(make_basic_manifest(), FakeDrmEngine()),
        FakeFetcher(),
        engine_factory=FixedEngineFactory(engine),
        event_logger=StorageEventLogger(base),
    )

    content = await manager.store("fake://movie")
    await manager.remove(content)
    base.close()

    events = read_events(tmp_path)
    assert [e["event"] for e in events] == ["store_started", "store_completed", "content_removed"]
    assert events[1]["offline_uri"] == "offline:manifest/0"
    assert events[1]["size_bytes"] == 0


@pytest.mark.asyncio
async def test_failed_store_is_logged(tmp_path):
    base = StructuredLogger("offline_storage", log_dir=tmp_path, enable_console=False)
    manifest = make_basic_manifest()
    manifest.presentation_timeline.is_static = False
    manager = StorageManager(
        FakeLoader(manifest, FakeDrmEngine()),
        FakeFetcher(),
        engine_factory=FixedEngineFactory(MemoryStorageEngine()),
        event_logger=StorageEventLogger(base),
    )

    with pytest.raises(CannotStoreLiveOfflineError):
        await manager.store("fake://live")
    base.close()

    failed = [e for e in read_events(tmp_path) if e["event"] == "store_failed"]
    assert failed[0]["original_uri"] == "fake://live"
    assert failed[0]["purged_segments"] == 0


@pytest.mark.parametrize("verbose, level", [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG)])
def test_configure_logging_sets_level_once(verbose, level):
    log = logging.getLogger("offline_storage")
    handlers, previous_level = list(log.handlers), log.level
    try:
        configure_logging(verbose)
        configure_logging(verbose)

        assert log.level == level
        assert len([h for h in log.handlers if isinstance(h, RichHandler)]) == 1
    finally:
        log.handlers[:] = handlers
        log.setLevel(previous_level)
