"""
Storage Layer.

This package handles all data persistence: the storage engine contract, its
memory, SQLite and file-tree backends, and the configuration file.
"""

from .config_manager import ConfigManager
from .engine import StorageEngine, StorageEngineFactory
from .factory import create_engine_factory
from .files import FileStorageEngine
from .memory import MemoryStorageEngine
from .sqlite import SqliteStorageEngine

__all__ = [
    "ConfigManager",
    "FileStorageEngine",
    "MemoryStorageEngine",
    "SqliteStorageEngine",
    "StorageEngine",
    "StorageEngineFactory",
    "create_engine_factory",
]
