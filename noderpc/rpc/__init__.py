"""JSON-RPC envelope codec."""

from noderpc.rpc.protocol import (
    FailureResponse,
    RpcCall,
    RpcErrorObject,
    RpcResponse,
    SuccessResponse,
    build_call,
    is_failure,
    parse_response,
)

__all__ = [
    "FailureResponse",
    "RpcCall",
    "RpcErrorObject",
    "RpcResponse",
    "SuccessResponse",
    "build_call",
    "is_failure",
    "parse_response",
]
