"""Configuration module for runhistory."""

from runhistory.config.settings import (
    HistoryConfig,
    LoggingConfig,
    StorageConfig,
    load_config,
)

__all__ = ["HistoryConfig", "LoggingConfig", "StorageConfig", "load_config"]
