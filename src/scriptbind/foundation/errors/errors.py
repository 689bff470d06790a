"""Standardized error handling for script bindings.

Provides error codes, a structured error model and the exception family
every builtin raises back to the calling script.
Uses Pydantic for validation and serialization of the error payload.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorCode(StrEnum):
    """Standard error codes for binding failures.

    Used for programmatic error handling and retry decisions.
    """
    ARGUMENT_ERROR = "ARGUMENT_ERROR"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    MISSING_CONFIG = "MISSING_CONFIG"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"
    MODEL_NOT_CONFIGURED = "MODEL_NOT_CONFIGURED"
    CLIENT_UNAVAILABLE = "CLIENT_UNAVAILABLE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_DOMAIN = "MISSING_DOMAIN"
    BAD_REQUEST = "BAD_REQUEST"
    API_KEY_INVALID = "API_KEY_INVALID"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    PARSE_ERROR = "PARSE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    MARSHAL_ERROR = "MARSHAL_ERROR"
    FILE_ERROR = "FILE_ERROR"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


# HTTP status -> code, checked before message patterns
_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.API_KEY_INVALID,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    408: ErrorCode.TIMEOUT,
    429: ErrorCode.RATE_LIMITED,
}

# Flattened pattern -> code mapping, ordered for priority
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "timed out": ErrorCode.TIMEOUT,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "rate": ErrorCode.RATE_LIMITED,
    "auth": ErrorCode.API_KEY_INVALID,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "filenotfound": ErrorCode.FILE_ERROR,
    "isadirectory": ErrorCode.FILE_ERROR,
    "notfound": ErrorCode.NOT_FOUND,
    "parse": ErrorCode.PARSE_ERROR,
    "json": ErrorCode.PARSE_ERROR,
    "decode": ErrorCode.PARSE_ERROR,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES.keys())


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    """Cached classification by exception signature."""
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.EXTERNAL_SERVICE_ERROR


def status_code_of(exc: BaseException) -> int | None:
    """HTTP status carried by a client exception (openai, httpx), if any."""
    status = getattr(exc, "status_code", None)
    if status is None and (response := getattr(exc, "response", None)) is not None:
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code via HTTP status, then name/message patterns."""
    if isinstance(exc, BindingException):
        return exc.error.code
    if (status := status_code_of(exc)) is not None:
        if status in _STATUS_CODES:
            return _STATUS_CODES[status]
        if status >= 500:
            return ErrorCode.EXTERNAL_SERVICE_ERROR
    return _classify_cached(f"{type(exc).__name__} {exc}")


class BindingError(BaseModel):
    """Structured error payload for binding failures.

    Attributes:
        operation: Qualified name of the builtin that failed (e.g. "llm.chat")
        message: Human-readable error message
        code: Machine-readable error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        details: Optional detailed information (e.g., stack trace)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Binding Error",
            "examples": [{
                "operation": "llm.chat",
                "message": "gpt model is not set",
                "code": "MODEL_NOT_CONFIGURED",
                "recoverable": False,
            }],
        },
    )

    operation: str = Field(default="", description="Builtin that produced the error")
    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = False
    details: str | None = Field(default=None, repr=False)

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Accept Exception objects and extract message."""
        if isinstance(v, Exception):
            return str(v) or type(v).__name__
        return v

    @computed_field
    @property
    def is_retryable(self) -> bool:
        """Whether this error is typically transient."""
        return self.code in _RETRYABLE_CODES

    def render(self) -> str:
        """Format error for the calling script."""
        prefix = f"{self.operation}: " if self.operation else ""
        return f"{prefix}{self.message}"

    __str__ = render


_RETRYABLE_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
    ErrorCode.EXTERNAL_SERVICE_ERROR,
})


# ─────────────────────────────────────────────────────────────────────────────
# Exception Family
# ─────────────────────────────────────────────────────────────────────────────

class BindingException(Exception):
    """Exception wrapping a BindingError, raised to the calling script."""

    code: ClassVar[ErrorCode] = ErrorCode.UNKNOWN

    __slots__ = ("error",)

    def __init__(
        self,
        message: str | BindingError,
        *,
        operation: str = "",
        code: ErrorCode | None = None,
        recoverable: bool = False,
    ) -> None:
        if isinstance(message, BindingError):
            self.error = message
        else:
            self.error = BindingError(
                operation=operation,
                message=message,
                code=code or self.code,
                recoverable=recoverable,
            )
        super().__init__(self.error.render())

    def with_operation(self, operation: str) -> Self:
        """Attach the builtin name unless a different one was recorded (mutates, returns self).

        An unqualified name (``send``) is upgraded to the qualified one (``email.send``).
        """
        current = self.error.operation
        if not current or (current != operation and operation.endswith(f".{current}")):
            self.error = self.error.model_copy(update={"operation": operation})
            self.args = (self.error.render(),)
        return self

    @classmethod
    def from_exc(cls, exc: BaseException, operation: str = "", context: str = "") -> Self:
        """Create from a foreign exception with auto-classification."""
        code = classify_exception(exc)
        msg = f"{context}: {exc}" if context else (str(exc) or type(exc).__name__)
        return cls(BindingError(
            operation=operation,
            message=msg,
            code=code,
            recoverable=code in _RETRYABLE_CODES,
            details=traceback.format_exc(),
        ))


class ArgumentError(BindingException):
    """Malformed or missing script-level input."""
    code = ErrorCode.ARGUMENT_ERROR


class TypeMismatch(ArgumentError):
    """Decoded value does not have the expected runtime type."""
    code = ErrorCode.TYPE_MISMATCH


class NotConfigured(BindingException):
    """A configuration key was never bound."""
    code = ErrorCode.NOT_CONFIGURED

    def __init__(self, key: str, *, operation: str = "") -> None:
        self.key = key
        super().__init__(f"config {key} not set", operation=operation)


class ClientUnavailable(BindingException):
    """The service client could not be constructed."""
    code = ErrorCode.CLIENT_UNAVAILABLE


class MissingConfig(ClientUnavailable):
    """A configuration key required to build the client is absent."""
    code = ErrorCode.MISSING_CONFIG

    def __init__(self, key: str, *, operation: str = "") -> None:
        self.key = key
        super().__init__(f"{key} is not set", operation=operation)


class UnsupportedProvider(ClientUnavailable):
    """Provider selector names no known client strategy."""
    code = ErrorCode.UNSUPPORTED_PROVIDER


class ModelNotConfigured(BindingException):
    """Neither an explicit model nor a configured default is available."""
    code = ErrorCode.MODEL_NOT_CONFIGURED


class ValidationError(BindingException):
    """Cross-field policy violation on otherwise well-typed arguments."""
    code = ErrorCode.VALIDATION_ERROR


class MissingDomain(ValidationError):
    """A local-part was given but no sender domain is configured."""
    code = ErrorCode.MISSING_DOMAIN


class TransportError(BindingException):
    """Network or provider failure, retryable unless classified bad-request."""
    code = ErrorCode.EXTERNAL_SERVICE_ERROR

    @property
    def is_bad_request(self) -> bool:
        return self.error.code is ErrorCode.BAD_REQUEST


class MarshalError(BindingException):
    """A response could not be converted to a script value."""
    code = ErrorCode.MARSHAL_ERROR


class FileError(BindingException):
    """A local file needed by the call could not be read."""
    code = ErrorCode.FILE_ERROR


class Cancelled(BindingException):
    """The host cancelled the call before the next attempt."""
    code = ErrorCode.CANCELLED
