"""
Defines custom exceptions for the library to allow for more specific error handling.

Every storage error is critical: the operation that raised it is abandoned.
Network errors raised by the segment fetcher are not wrapped and reach the
caller unchanged.
"""

from enum import Enum
from typing import Any


class Severity(Enum):
    """How much of the current operation an error invalidates."""

    CRITICAL = "critical"


class Category(Enum):
    """The subsystem an error originates from."""

    STORAGE = "storage"
    CONFIG = "config"


class ErrorCode(Enum):
    """Stable identifiers for every error the storage layer can raise."""

    STORE_ALREADY_IN_PROGRESS = "STORE_ALREADY_IN_PROGRESS"
    CANNOT_STORE_LIVE_OFFLINE = "CANNOT_STORE_LIVE_OFFLINE"
    NO_INIT_DATA_FOR_OFFLINE = "NO_INIT_DATA_FOR_OFFLINE"
    STORAGE_NOT_SUPPORTED = "STORAGE_NOT_SUPPORTED"
    OPERATION_ABORTED = "OPERATION_ABORTED"
    REQUESTED_ITEM_NOT_FOUND = "REQUESTED_ITEM_NOT_FOUND"
    MALFORMED_OFFLINE_URI = "MALFORMED_OFFLINE_URI"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"


class OfflineStorageError(Exception):
    """Base exception for all library-specific errors."""

    code: ErrorCode
    category = Category.STORAGE
    severity = Severity.CRITICAL
    default_message = "Offline storage error."

    def __init__(self, *data: Any, message: str | None = None):
        self.data = data
        super().__init__(message or self._describe())

    def _describe(self) -> str:
        if self.data:
            details = ", ".join(str(d) for d in self.data)
            return f"{self.default_message} ({details})"
        return self.default_message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OfflineStorageError):
            return NotImplemented
        return (
            self.code == other.code
            and self.category == other.category
            and self.data == other.data
        )

    def __hash__(self) -> int:
        return hash((self.code, self.data))


class StoreAlreadyInProgressError(OfflineStorageError):
    """Raised when store() is called while another store is still running."""

    code = ErrorCode.STORE_ALREADY_IN_PROGRESS
    default_message = "Another store operation is already in progress."


class CannotStoreLiveOfflineError(OfflineStorageError):
    """Raised when the loaded manifest describes live or in-progress content."""

    code = ErrorCode.CANNOT_STORE_LIVE_OFFLINE
    default_message = "Live content cannot be stored offline."


class NoInitDataForOfflineError(OfflineStorageError):
    """Raised when persistent licences are requested but no DRM session exists."""

    code = ErrorCode.NO_INIT_DATA_FOR_OFFLINE
    default_message = "No DRM sessions were created for persistent offline playback."


class StorageNotSupportedError(OfflineStorageError):
    """Raised when the configured storage engine is unavailable on this system."""

    code = ErrorCode.STORAGE_NOT_SUPPORTED
    default_message = "The configured storage engine is not supported."


class OperationAbortedError(OfflineStorageError):
    """Raised when the manager is destroyed while an operation is in flight."""

    code = ErrorCode.OPERATION_ABORTED
    default_message = "The operation was aborted because storage was destroyed."


class RequestedItemNotFoundError(OfflineStorageError):
    """Raised when no stored manifest exists for an offline URI."""

    code = ErrorCode.REQUESTED_ITEM_NOT_FOUND
    default_message = "The requested stored content was not found."


class MalformedOfflineUriError(OfflineStorageError):
    """Raised when an offline URI cannot be decoded into a manifest id."""

    code = ErrorCode.MALFORMED_OFFLINE_URI
    default_message = "The offline URI is malformed."


class ConfigurationError(OfflineStorageError):
    """Raised for issues related to configuration loading or validation."""

    code = ErrorCode.INVALID_CONFIGURATION
    category = Category.CONFIG
    default_message = "Invalid configuration."
