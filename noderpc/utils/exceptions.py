"""
Exception hierarchy and error classification for noderpc.

Provides:
- Domain exception classes with error codes and categories
- Provider (JSON-RPC) error codes with their default messages
- Mapping of transport conditions and failure responses to domain errors
- Safe error message formatting (no credential leak from URLs or headers)
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

import httpx

from noderpc.transport import request as transport

if TYPE_CHECKING:
    from noderpc.rpc.protocol import FailureResponse


class ErrorCategory(Enum):
    """Error categories for classification."""
    FATAL = "fatal"
    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    PROTOCOL = "protocol"


class NodeRpcError(Exception):
    """Base exception for all noderpc errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InvalidUrlError(NodeRpcError):
    """Malformed node endpoint, raised at construction time."""

    def __init__(self, value: str):
        super().__init__(
            f"Invalid URL: {value}",
            code="INVALID_URL",
            category=ErrorCategory.CONFIGURATION,
            details={"value": value},
        )


class NetworkConnectionRefusedError(NodeRpcError):
    """The node refused the connection."""

    def __init__(self, network: str):
        super().__init__(
            f"Cannot connect to the network {network}. "
            "Please make sure your node is running, and check your internet connection and networking config",
            code="CONNECTION_REFUSED",
            category=ErrorCategory.CONNECTION,
            details={"network": network},
        )


class NetworkTimeoutError(NodeRpcError):
    """A single attempt exceeded the transport timeout."""

    def __init__(self, network: str | None = None):
        super().__init__(
            "Network timeout. If you are using a remote node, try increasing the timeout in your network config",
            code="NETWORK_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"network": network} if network else {},
        )


class InvalidJsonResponseError(NodeRpcError):
    """The node answered with a body that is not a valid JSON-RPC response."""

    def __init__(self, response: str):
        super().__init__(
            f"Invalid JSON-RPC response received: {response[:200]}",
            code="INVALID_JSON_RESPONSE",
            category=ErrorCategory.PROTOCOL,
            details={"response": response[:200]},
        )


class ResponseIdMismatchError(NodeRpcError):
    """The response ids do not match the submitted call ids one to one."""

    def __init__(self, expected: list[int | str], received: list[int | str | None]):
        super().__init__(
            f"Response ids {received} do not match submitted ids {expected}",
            code="RESPONSE_ID_MISMATCH",
            category=ErrorCategory.PROTOCOL,
            details={"expected": expected, "received": received},
        )


class ProviderErrorCode(IntEnum):
    """JSON-RPC (EIP-1474) and provider (EIP-1193) error codes."""
    USER_REJECTED_REQUEST = 4001
    UNAUTHORIZED = 4100
    UNSUPPORTED_METHOD = 4200
    DISCONNECTED = 4900
    CHAIN_DISCONNECTED = 4901
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    INVALID_INPUT = -32000
    RESOURCE_NOT_FOUND = -32001
    RESOURCE_UNAVAILABLE = -32002
    TRANSACTION_REJECTED = -32003
    METHOD_NOT_SUPPORTED = -32004
    LIMIT_EXCEEDED = -32005
    JSON_RPC_VERSION_NOT_SUPPORTED = -32006


PROVIDER_ERROR_MESSAGES: dict[int, str] = {
    ProviderErrorCode.USER_REJECTED_REQUEST: "The user rejected the request.",
    ProviderErrorCode.UNAUTHORIZED: "The requested method and/or account has not been authorized by the user.",
    ProviderErrorCode.UNSUPPORTED_METHOD: "The provider does not support the requested method.",
    ProviderErrorCode.DISCONNECTED: "The provider is disconnected from all chains.",
    ProviderErrorCode.CHAIN_DISCONNECTED: "The provider is disconnected from the specified chain.",
    ProviderErrorCode.PARSE_ERROR: "Invalid JSON was received by the server.",
    ProviderErrorCode.INVALID_REQUEST: "The JSON sent is not a valid Request object.",
    ProviderErrorCode.METHOD_NOT_FOUND: "The method does not exist / is not available.",
    ProviderErrorCode.INVALID_PARAMS: "Invalid method parameter(s).",
    ProviderErrorCode.INTERNAL_ERROR: "Internal JSON-RPC error.",
    ProviderErrorCode.INVALID_INPUT: "Missing or invalid parameters.",
    ProviderErrorCode.RESOURCE_NOT_FOUND: "Requested resource not found.",
    ProviderErrorCode.RESOURCE_UNAVAILABLE: "Requested resource not available.",
    ProviderErrorCode.TRANSACTION_REJECTED: "Transaction creation failed.",
    ProviderErrorCode.METHOD_NOT_SUPPORTED: "Method is not implemented.",
    ProviderErrorCode.LIMIT_EXCEEDED: "Request exceeds defined limit.",
    ProviderErrorCode.JSON_RPC_VERSION_NOT_SUPPORTED: "Version of JSON-RPC protocol is not supported.",
}


class ProviderError(NodeRpcError):
    """
    Error reported by the node, or synthesized for rate-limit exhaustion.

    `data` is the node's error data unchanged. For LIMIT_EXCEEDED raised by
    the retry loop it is `{"hostname": ..., "retryAfterSeconds": ...}`, keyed
    the way the JSON-RPC payload spells it.
    """

    def __init__(self, code: int, data: Any = None, message: str | None = None):
        text = message or PROVIDER_ERROR_MESSAGES.get(code, f"Provider error {code}")
        category = ErrorCategory.RATE_LIMIT if code == ProviderErrorCode.LIMIT_EXCEEDED else ErrorCategory.FATAL
        super().__init__(text, code="PROVIDER_ERROR", category=category, details={"code": code})
        # JSON-RPC error code; `code` keeps the string form shared by all NodeRpcError.
        self.code = code
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["error"] = "PROVIDER_ERROR"
        out["code"] = self.code
        out["data"] = self.data
        return out

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(frozen=True)
class RateLimitSignal:
    """The node is throttling; carries its `retry-after` header, if any."""

    retry_after: str | None = None


TOO_MANY_REQUESTS_STATUS = 429


def classify_transport_error(exc: Exception, network_name: str) -> NodeRpcError | RateLimitSignal | None:
    """
    Map a transport exception to its outcome.

    Returns:
        A domain error to raise, a RateLimitSignal to hand to the retry policy,
        or None when the exception must be re-raised unchanged.
    """
    if isinstance(exc, transport.ConnectionRefusedError):
        return NetworkConnectionRefusedError(network_name)

    if isinstance(exc, transport.RequestTimeoutError):
        return NetworkTimeoutError(network_name)

    if isinstance(exc, transport.ResponseStatusCodeError) and exc.status_code == TOO_MANY_REQUESTS_STATUS:
        retry_after = exc.headers.get("retry-after")
        return RateLimitSignal(retry_after if isinstance(retry_after, str) else None)

    return None


def provider_error_from_failure(response: FailureResponse) -> ProviderError:
    """Build the ProviderError for a failure response, code and data unchanged."""
    return ProviderError(response.error.code, data=response.error.data, message=response.error.message or None)


def limit_exceeded_error(hostname: str | None, retry_after_seconds: int) -> ProviderError:
    """Error raised once the retry policy gives up on a rate-limited request."""
    return ProviderError(
        ProviderErrorCode.LIMIT_EXCEEDED,
        data={"hostname": hostname, "retryAfterSeconds": retry_after_seconds},
    )


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"(?<=://)[^/\s:@]+:[^/\s@]+(?=@)"),
    re.compile(r"(?<=/v[23]/)[a-zA-Z0-9]{20,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove credentials (API keys in node URLs, bearer tokens) from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory]:
    """
    Classify an exception that reached the caller.

    Returns:
        Tuple of (error_code, category)
    """
    if isinstance(exc, ProviderError):
        return f"PROVIDER_ERROR_{exc.code}", exc.category

    if isinstance(exc, NodeRpcError):
        return exc.code, exc.category

    if isinstance(exc, transport.ResponseStatusCodeError):
        if exc.status_code == TOO_MANY_REQUESTS_STATUS:
            return "RATE_LIMIT", ErrorCategory.RATE_LIMIT
        return f"HTTP_{exc.status_code}", ErrorCategory.FATAL

    if isinstance(exc, transport.RequestTimeoutError | httpx.TimeoutException | asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT

    if isinstance(exc, transport.RequestError | httpx.TransportError | ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.CONNECTION

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.PROTOCOL

    if isinstance(exc, ValueError):
        return "INVALID_VALUE", ErrorCategory.CONFIGURATION

    return "INTERNAL_ERROR", ErrorCategory.FATAL
