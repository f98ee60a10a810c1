"""
Structured error handling for the grant store.

Every error carries an ErrorContext naming the grant, the token kind and,
at most, a masked prefix of the token value involved. Full token values
never reach an error message.

A plain miss on find_by_id / find_by_token is not an error: those
operations return None, and callers map it to an invalid_token response.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..common.utils import get_current_time, mask_token


class ErrorCode(Enum):
    """Structured error codes for grant store failures."""

    # Serialization errors
    ENCODE_FAILED = "encode_failed"
    DECODE_FAILED = "decode_failed"

    # Lookup errors
    CLIENT_NOT_FOUND = "client_not_found"

    # Write errors
    TOKEN_CONFLICT = "token_conflict"

    # Backend errors
    STORAGE_ERROR = "storage_error"
    CONFIGURATION_ERROR = "configuration_error"


@dataclass
class ErrorContext:
    """Additional context for errors."""

    grant_id: Optional[str] = None
    token_kind: Optional[str] = None
    token_prefix: Optional[str] = None
    timestamp: datetime = field(default_factory=get_current_time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_token(cls, grant_id: Optional[str] = None, token_kind: Any = None,
                  token_value: Optional[str] = None, **metadata) -> "ErrorContext":
        """Build a context, masking the token value and normalizing the kind."""
        kind = getattr(token_kind, "value", token_kind)
        return cls(
            grant_id=grant_id,
            token_kind=kind,
            token_prefix=mask_token(token_value) if token_value else None,
            metadata=dict(metadata),
        )


class GrantStoreError(Exception):
    """
    Base exception class for all grant store errors.

    Provides structured error information with an error code,
    grant/token context and the underlying cause.
    """

    default_code = ErrorCode.STORAGE_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.context = context or ErrorContext()
        self.cause = cause

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
            "timestamp": self.context.timestamp.isoformat(),
        }

        if self.context.grant_id:
            result["grant_id"] = self.context.grant_id

        if self.context.token_kind:
            result["token_kind"] = self.context.token_kind

        if self.context.token_prefix:
            result["token_prefix"] = self.context.token_prefix

        if self.context.metadata:
            result["metadata"] = self.context.metadata

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result

    def __str__(self) -> str:
        parts = [f"{self.code.value}: {self.message}"]
        if self.context.grant_id:
            parts.append(f"grant_id={self.context.grant_id}")
        if self.context.token_kind:
            parts.append(f"kind={self.context.token_kind}")
        if self.context.token_prefix:
            parts.append(f"token={self.context.token_prefix}")
        return " ".join(parts)


class CodecError(GrantStoreError):
    """An attribute, metadata or claims map could not be encoded or decoded."""

    default_code = ErrorCode.ENCODE_FAILED

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path
        if path:
            self.context.metadata["path"] = path


class ClientNotFoundError(GrantStoreError):
    """A stored grant references a registered client that no longer exists."""

    default_code = ErrorCode.CLIENT_NOT_FOUND

    def __init__(self, registered_client_id: str, grant_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", None) or ErrorContext(grant_id=grant_id)
        context.metadata["registered_client_id"] = registered_client_id
        super().__init__(
            f"Registered client not found with id: {registered_client_id}",
            context=context,
            **kwargs,
        )
        self.registered_client_id = registered_client_id


class ConflictError(GrantStoreError):
    """A token value is already indexed under a different grant."""

    default_code = ErrorCode.TOKEN_CONFLICT

    def __init__(self, message: str, existing_grant_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.existing_grant_id = existing_grant_id
        if existing_grant_id:
            self.context.metadata["existing_grant_id"] = existing_grant_id


class StorageError(GrantStoreError):
    """The storage backend failed; the original exception is kept as cause."""

    default_code = ErrorCode.STORAGE_ERROR

    def __init__(self, operation: str, message: str, **kwargs):
        super().__init__(f"{operation} failed: {message}", **kwargs)
        self.operation = operation


class ConfigurationError(GrantStoreError):
    """Raised when the store configuration is invalid."""

    default_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.setting = setting
        if setting:
            self.context.metadata["setting"] = setting


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "GrantStoreError",
    "CodecError",
    "ClientNotFoundError",
    "ConflictError",
    "StorageError",
    "ConfigurationError",
]
