"""Utility modules for runhistory."""

from runhistory.utils.clock import FixedClock, SystemClock
from runhistory.utils.logging import (
    clear_suite_context,
    configure_logging,
    get_logger,
    set_suite_context,
)
from runhistory.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    FilterError,
    InvalidFilterError,
    Ok,
    Result,
    StorageError,
    StorageFailure,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_suite_context",
    "clear_suite_context",
    # Clocks
    "SystemClock",
    "FixedClock",
    # Results and errors
    "Ok",
    "Err",
    "Result",
    "StorageError",
    "FilterError",
    "ConfigError",
    "StorageFailure",
    "InvalidFilterError",
    "ExitCode",
]
