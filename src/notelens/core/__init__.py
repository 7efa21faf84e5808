"""Core module exports."""

from notelens.core.errors import (
    ConfigError,
    EncodingError,
    ErrorCode,
    InvalidResponseError,
    NoteLensError,
    PersistenceError,
    ReindexError,
    ServiceError,
)
from notelens.core.logging import (
    clear_operation_id,
    configure_logging,
    get_logger,
    get_operation_id,
    set_operation_id,
)
from notelens.core.progress import pluralize, spinner, status

__all__ = [
    # Errors
    "ConfigError",
    "EncodingError",
    "ErrorCode",
    "InvalidResponseError",
    "NoteLensError",
    "PersistenceError",
    "ReindexError",
    "ServiceError",
    # Logging
    "clear_operation_id",
    "configure_logging",
    "get_logger",
    "get_operation_id",
    "set_operation_id",
    # Progress
    "pluralize",
    "spinner",
    "status",
]
