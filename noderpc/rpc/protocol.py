"""JSON-RPC 2.0 call/response models and the pure encode/parse functions."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from noderpc.utils.exceptions import InvalidJsonResponseError

JSONRPC_VERSION = "2.0"

RpcId = Union[int, str, None]
RpcParams = Union[list[Any], dict[str, Any]]


@dataclass(slots=True)
class RpcCall:
    """One procedure call frame."""

    id: int
    method: str
    params: RpcParams

    def to_dict(self) -> dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }


@dataclass(slots=True)
class RpcErrorObject:
    """Error member of a failure response."""

    code: int
    message: str = ""
    data: Any = None


@dataclass(slots=True)
class SuccessResponse:
    id: RpcId
    result: Any


@dataclass(slots=True)
class FailureResponse:
    id: RpcId
    error: RpcErrorObject


RpcResponse = Union[SuccessResponse, FailureResponse]


def build_call(id: int, method: str, params: Any = None) -> RpcCall:
    """Build a call frame; missing params encode as an empty positional list."""
    if params is None:
        normalized: RpcParams = []
    elif isinstance(params, dict):
        normalized = dict(params)
    else:
        normalized = list(params)
    return RpcCall(id=id, method=method, params=normalized)


def is_failure(response: RpcResponse) -> bool:
    return isinstance(response, FailureResponse)


def _parse_single(raw: str, obj: Any) -> RpcResponse:
    if not isinstance(obj, dict) or obj.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidJsonResponseError(raw)

    rpc_id = obj.get("id")
    if isinstance(rpc_id, bool) or not isinstance(rpc_id, (int, str, type(None))):
        raise InvalidJsonResponseError(raw)

    has_result = "result" in obj
    has_error = "error" in obj
    if has_result == has_error:
        raise InvalidJsonResponseError(raw)

    if has_result:
        return SuccessResponse(id=rpc_id, result=obj["result"])

    error = obj["error"]
    if not isinstance(error, dict):
        raise InvalidJsonResponseError(raw)
    code = error.get("code")
    message = error.get("message", "")
    if isinstance(code, bool) or not isinstance(code, int) or not isinstance(message, str):
        raise InvalidJsonResponseError(raw)
    return FailureResponse(id=rpc_id, error=RpcErrorObject(code=code, message=message, data=error.get("data")))


def parse_response(raw: str | bytes) -> RpcResponse | list[RpcResponse]:
    """
    Parse a raw response body.

    Returns a single response for an object body and a list for an array body.

    Raises:
        InvalidJsonResponseError: body is not JSON or not a JSON-RPC response.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidJsonResponseError(text) from exc

    if isinstance(obj, list):
        return [_parse_single(text, item) for item in obj]
    return _parse_single(text, obj)
