import pytest

from helpers import FakeDrmEngine, FakeFetcher, FakeLoader, FixedEngineFactory, make_basic_manifest
from offline_storage.core.storage_manager import StorageManager
from offline_storage.models import StorageConfig
from offline_storage.storage.memory import MemoryStorageEngine


@pytest.fixture
def engine():
    return MemoryStorageEngine()


@pytest.fixture
def drm_engine():
    return FakeDrmEngine()


@pytest.fixture
def manifest():
    return make_basic_manifest()


@pytest.fixture
def loader(manifest, drm_engine):
    return FakeLoader(manifest, drm_engine)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def engine_factory(engine):
    return FixedEngineFactory(engine)


@pytest.fixture
def manager(loader, fetcher, engine_factory):
    return StorageManager(
        loader,
        fetcher,
        engine_factory=engine_factory,
        config=StorageConfig(preferred_audio_language="en"),
    )
