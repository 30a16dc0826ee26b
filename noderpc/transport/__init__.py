"""HTTP transport used to reach remote nodes."""

from noderpc.transport.request import (
    ConnectionRefusedError,
    RequestError,
    RequestTimeoutError,
    ResponseStatusCodeError,
    TransportKind,
    get_dispatcher,
    is_valid_url,
    post_json_request,
    select_transport_kind,
    should_use_proxy,
)

__all__ = [
    "ConnectionRefusedError",
    "RequestError",
    "RequestTimeoutError",
    "ResponseStatusCodeError",
    "TransportKind",
    "get_dispatcher",
    "is_valid_url",
    "post_json_request",
    "select_transport_kind",
    "should_use_proxy",
]
