"""Exception handling module."""

from barvault.core.exceptions.base import (
    BarValidationError,
    BarVaultError,
    CalendarUnavailableError,
    ConfigError,
    FetchError,
    FetchRetryExhaustedError,
    JobStateError,
    StorageError,
)

__all__ = [
    "BarVaultError",
    "BarValidationError",
    "CalendarUnavailableError",
    "ConfigError",
    "FetchError",
    "FetchRetryExhaustedError",
    "JobStateError",
    "StorageError",
]
