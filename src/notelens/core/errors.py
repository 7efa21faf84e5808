"""notelens error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Encoding
- 4xxx: Embedding service
- 5xxx: Persistence
- 6xxx: Reindex
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Encoding (3xxx)
    ENCODING_FAILED = 3001

    # Embedding service (4xxx)
    SERVICE_UNAVAILABLE = 4001
    SERVICE_AUTH_FAILED = 4002
    SERVICE_RATE_LIMITED = 4003
    SERVICE_MISSING_CREDENTIAL = 4004
    SERVICE_INVALID_RESPONSE = 4005

    # Persistence (5xxx)
    PERSISTENCE_LOAD_FAILED = 5001
    PERSISTENCE_SAVE_FAILED = 5002

    # Reindex (6xxx)
    REINDEX_ALREADY_RUNNING = 6001


@dataclass(frozen=True, slots=True)
class NoteLensError(Exception):
    """Base error with structured context for logs and CLI output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'ENCODING_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(NoteLensError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class EncodingError(NoteLensError):
    """Text could not be tokenized by the configured encoding."""

    @classmethod
    def untokenizable(cls, reason: str, **details: Any) -> "EncodingError":
        return cls(
            code=ErrorCode.ENCODING_FAILED,
            message=f"Cannot tokenize text: {reason}",
            details=details,
        )


class ServiceError(NoteLensError):
    """Embedding/completion service failure (network, auth, rate limit)."""

    @classmethod
    def unavailable(cls, reason: str) -> "ServiceError":
        return cls(
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message=f"Embedding service request failed: {reason}",
            retryable=True,
            details={"reason": reason},
        )

    @classmethod
    def auth_failed(cls, reason: str) -> "ServiceError":
        return cls(
            code=ErrorCode.SERVICE_AUTH_FAILED,
            message=f"Embedding service rejected credentials: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def rate_limited(cls, reason: str) -> "ServiceError":
        return cls(
            code=ErrorCode.SERVICE_RATE_LIMITED,
            message=f"Embedding service rate limit hit: {reason}",
            retryable=True,
            details={"reason": reason},
        )

    @classmethod
    def missing_credential(cls) -> "ServiceError":
        return cls(
            code=ErrorCode.SERVICE_MISSING_CREDENTIAL,
            message="No API key configured for the embedding service",
        )


class InvalidResponseError(ServiceError):
    """Service answered, but the payload does not match the request."""

    @classmethod
    def count_mismatch(cls, expected: int, received: int) -> "InvalidResponseError":
        return cls(
            code=ErrorCode.SERVICE_INVALID_RESPONSE,
            message=f"Expected {expected} embedding(s), received {received}",
            details={"expected": expected, "received": received},
        )

    @classmethod
    def malformed(cls, reason: str) -> "InvalidResponseError":
        return cls(
            code=ErrorCode.SERVICE_INVALID_RESPONSE,
            message=f"Malformed service response: {reason}",
            details={"reason": reason},
        )


class PersistenceError(NoteLensError):
    """Snapshot load/save failure."""

    @classmethod
    def load_failed(cls, path: str, reason: str) -> "PersistenceError":
        return cls(
            code=ErrorCode.PERSISTENCE_LOAD_FAILED,
            message=f"Failed to load index snapshot from {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def save_failed(cls, path: str, reason: str) -> "PersistenceError":
        return cls(
            code=ErrorCode.PERSISTENCE_SAVE_FAILED,
            message=f"Failed to save index snapshot to {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )


class ReindexError(NoteLensError):
    """Bulk reindex controller misuse."""

    @classmethod
    def already_running(cls, state: str) -> "ReindexError":
        return cls(
            code=ErrorCode.REINDEX_ALREADY_RUNNING,
            message=f"A reindex run is already in progress (state: {state})",
            details={"state": state},
        )

