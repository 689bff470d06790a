"""Unified error handling for scriptbind.

- ErrorCode: Standard error codes for binding failures
- BindingError/BindingException: Structured errors and the script-facing exception family
- classify_exception: HTTP-status and pattern based classification used by the retry loop
"""

from .errors import (
    ArgumentError,
    BindingError,
    BindingException,
    Cancelled,
    ClientUnavailable,
    ErrorCode,
    FileError,
    MarshalError,
    MissingConfig,
    MissingDomain,
    ModelNotConfigured,
    NotConfigured,
    TransportError,
    TypeMismatch,
    UnsupportedProvider,
    ValidationError,
    classify_exception,
    status_code_of,
)

__all__ = [
    # Core errors
    "ErrorCode", "BindingError", "BindingException", "classify_exception", "status_code_of",
    # Argument & configuration
    "ArgumentError", "TypeMismatch", "NotConfigured", "ClientUnavailable", "MissingConfig",
    "UnsupportedProvider", "ModelNotConfigured",
    # Validation & runtime
    "ValidationError", "MissingDomain", "TransportError", "MarshalError", "FileError", "Cancelled",
]
