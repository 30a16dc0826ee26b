"""Utility functions for noderpc."""

from noderpc.utils.exceptions import (
    NodeRpcError,
    InvalidUrlError,
    NetworkConnectionRefusedError,
    NetworkTimeoutError,
    InvalidJsonResponseError,
    ResponseIdMismatchError,
    ProviderError,
    ProviderErrorCode,
    RateLimitSignal,
    ErrorCategory,
    classify_exception,
    classify_transport_error,
    sanitize_error_message,
)

__all__ = [
    "NodeRpcError",
    "InvalidUrlError",
    "NetworkConnectionRefusedError",
    "NetworkTimeoutError",
    "InvalidJsonResponseError",
    "ResponseIdMismatchError",
    "ProviderError",
    "ProviderErrorCode",
    "RateLimitSignal",
    "ErrorCategory",
    "classify_exception",
    "classify_transport_error",
    "sanitize_error_message",
]
