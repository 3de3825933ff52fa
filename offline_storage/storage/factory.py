"""
Resolves the configured storage backend into an engine factory.
"""

from offline_storage.models.config import StorageConfig

from .engine import StorageEngine, StorageEngineFactory
from .files import FileStorageEngine
from .memory import MemoryStorageEngine
from .sqlite import SqliteStorageEngine

ENGINES: dict[str, type[StorageEngine]] = {
    "memory": MemoryStorageEngine,
    "sqlite": SqliteStorageEngine,
    "files": FileStorageEngine,
}


def create_engine_factory(config: StorageConfig) -> StorageEngineFactory:
    """Builds the factory for the backend named by `config.engine`."""
    engine_cls = ENGINES[config.engine]
    if engine_cls is MemoryStorageEngine:
        return StorageEngineFactory(engine_cls)
    return StorageEngineFactory(engine_cls, storage_path=config.storage_path)
