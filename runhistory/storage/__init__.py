"""Storage backends for recorded test runs.

- InMemoryRunStore: process lifetime only
- SqliteRunStore: durable, indexed; the default backend
- JsonRunStore: a single JSON document, rewritten atomically
"""

from __future__ import annotations

from runhistory.config.settings import STORAGE_BACKENDS, StorageConfig
from runhistory.storage.base import RunStore, chronological
from runhistory.storage.json_file import JsonRunStore
from runhistory.storage.memory import InMemoryRunStore
from runhistory.storage.sqlite import SqliteRunStore
from runhistory.utils.result import ConfigError, Err, Ok, Result


def create_store(config: StorageConfig) -> Result[RunStore, ConfigError]:
    """
    Build the store named by the storage configuration.

    The store is returned uninitialized; call ``initialize()`` at start-up.
    """
    if config.backend == "memory":
        return Ok(InMemoryRunStore())
    if config.backend == "sqlite":
        return Ok(SqliteRunStore(config.path))
    if config.backend == "json":
        return Ok(JsonRunStore(config.path))
    return Err(ConfigError(
        field="storage.backend",
        message=f"Unknown backend '{config.backend}', expected one of {', '.join(STORAGE_BACKENDS)}",
    ))


__all__ = [
    "RunStore",
    "InMemoryRunStore",
    "SqliteRunStore",
    "JsonRunStore",
    "chronological",
    "create_store",
]
