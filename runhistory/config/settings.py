"""Centralized configuration for run history recording and reporting.

Configuration is loaded from a YAML file, overlaid with environment
variables, and validated at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from runhistory.models import DEFAULT_PROJECT_KEY
from runhistory.utils.result import ConfigError, Err, Ok, Result

CONFIG_FILE_NAME = "runhistory.yaml"

DEFAULT_STORAGE_PATH = ".runhistory/history.db"

STORAGE_BACKENDS = ("memory", "sqlite", "json")
LOG_LEVELS = ("debug", "info", "warn", "warning", "error")
LOG_FORMATS = ("json", "text")

# Environment overrides
ENV_RECORD_STATISTICS = "RUNHISTORY_RECORD_STATISTICS"
ENV_PROJECT_KEY = "RUNHISTORY_PROJECT_KEY"
ENV_STORAGE_BACKEND = "RUNHISTORY_STORAGE_BACKEND"
ENV_STORAGE_PATH = "RUNHISTORY_STORAGE_PATH"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass
class StorageConfig:
    """Where run history is persisted."""

    backend: str = "sqlite"
    path: str = DEFAULT_STORAGE_PATH


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "json"


@dataclass
class HistoryConfig:
    """
    Complete run history configuration.

    Instances are shared mutable state: the recorder reads
    ``recording_enabled`` and ``project_key`` on every finished test, so a
    change takes effect from the next recorded run.
    """

    recording_enabled: bool = False
    project_key: str = DEFAULT_PROJECT_KEY

    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_dir: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: Path) -> Result["HistoryConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message="Top level of the configuration must be a mapping",
            ))

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["HistoryConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        enabled = _parse_bool(data.get("recording_enabled", False))
        if enabled is None:
            return Err(ConfigError(
                field="recording_enabled",
                message=f"Expected a boolean, got {data.get('recording_enabled')!r}",
            ))

        storage_data = data.get("storage") or {}
        logging_data = data.get("logging") or {}
        if not isinstance(storage_data, dict):
            return Err(ConfigError(field="storage", message="Expected a mapping"))
        if not isinstance(logging_data, dict):
            return Err(ConfigError(field="logging", message="Expected a mapping"))

        storage = StorageConfig(
            backend=str(storage_data.get("backend", "sqlite")),
            path=str(storage_data.get("path", DEFAULT_STORAGE_PATH)),
        )
        logging_config = LoggingConfig(
            level=str(logging_data.get("level", "info")),
            format=str(logging_data.get("format", "json")),
        )

        return Ok(cls(
            recording_enabled=enabled,
            project_key=str(data.get("project_key") or DEFAULT_PROJECT_KEY),
            storage=storage,
            logging=logging_config,
        ))

    def apply_environment(self, environ: Mapping[str, str]) -> Result["HistoryConfig", ConfigError]:
        """
        Overlay settings taken from environment variables.

        Args:
            environ: Environment mapping (usually ``os.environ``)

        Returns:
            Result with this config, updated in place, or error
        """
        if ENV_RECORD_STATISTICS in environ:
            enabled = _parse_bool(environ[ENV_RECORD_STATISTICS])
            if enabled is None:
                return Err(ConfigError(
                    field=ENV_RECORD_STATISTICS,
                    message=f"Expected a boolean, got {environ[ENV_RECORD_STATISTICS]!r}",
                ))
            self.recording_enabled = enabled

        if environ.get(ENV_PROJECT_KEY):
            self.project_key = environ[ENV_PROJECT_KEY]
        if environ.get(ENV_STORAGE_BACKEND):
            self.storage.backend = environ[ENV_STORAGE_BACKEND]
        if environ.get(ENV_STORAGE_PATH):
            self.storage.path = environ[ENV_STORAGE_PATH]

        return Ok(self)

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if not self.project_key.strip():
            return Err(ConfigError(
                field="project_key",
                message="Must not be blank",
            ))

        if self.storage.backend not in STORAGE_BACKENDS:
            return Err(ConfigError(
                field="storage.backend",
                message=f"Must be one of {', '.join(STORAGE_BACKENDS)}, got '{self.storage.backend}'",
            ))
        if self.storage.backend != "memory" and not self.storage.path:
            return Err(ConfigError(
                field="storage.path",
                message=f"Required for the {self.storage.backend} backend",
            ))

        if self.logging.level.lower() not in LOG_LEVELS:
            return Err(ConfigError(
                field="logging.level",
                message=f"Must be one of {', '.join(LOG_LEVELS)}, got '{self.logging.level}'",
            ))
        if self.logging.format not in LOG_FORMATS:
            return Err(ConfigError(
                field="logging.format",
                message=f"Must be one of {', '.join(LOG_FORMATS)}, got '{self.logging.format}'",
            ))

        return Ok(None)

    def resolve_paths(self) -> None:
        """Make a relative storage path relative to the config directory."""
        if self.config_dir is None or self.storage.path == ":memory:":
            return
        path = Path(self.storage.path)
        if not path.is_absolute():
            self.storage.path = str(self.config_dir / path)


def _parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def load_config(
    config_dir: Path = None,
    environ: Mapping[str, str] = None,
) -> Result[HistoryConfig, ConfigError]:
    """
    Load configuration from the standard location.

    Loads ``<config_dir>/runhistory.yaml`` if present, then overlays the
    RUNHISTORY_* environment variables, then validates.

    Args:
        config_dir: Configuration directory (defaults to the working directory)
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Result with loaded config or error
    """
    if config_dir is None:
        config_dir = Path(".")
    if environ is None:
        environ = os.environ

    config_dir = Path(config_dir)

    config_path = config_dir / CONFIG_FILE_NAME
    if config_path.exists():
        result = HistoryConfig.from_yaml(config_path)
        if result.is_err():
            return result
        config = result.unwrap()
    else:
        config = HistoryConfig()

    config.config_dir = config_dir

    result = config.apply_environment(environ)
    if result.is_err():
        return result

    validation_result = config.validate()
    if validation_result.is_err():
        return Err(validation_result.unwrap_err())

    config.resolve_paths()
    return Ok(config)
