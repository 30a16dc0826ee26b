"""HTTP dispatcher selection and JSON POST helper for node exchanges."""

from __future__ import annotations

import builtins
import json
from enum import Enum
from typing import Any
from urllib.parse import urlparse

import httpx
from loguru import logger

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_MAX_CONNECTIONS = 128

_LOCAL_HOSTS = {"localhost", "127.0.0.1"}


class TransportKind(Enum):
    """How the dispatcher reaches the node."""
    POOL = "pool"
    PROXY = "proxy"


class RequestError(Exception):
    """Base class for the transport conditions raised by post_json_request."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class ConnectionRefusedError(RequestError):
    """The remote end refused the TCP connection."""

    def __init__(self, url: str):
        super().__init__(f"connection refused: {_host_of(url)}", url)


class RequestTimeoutError(RequestError):
    """The exchange did not complete within the dispatcher timeout."""

    def __init__(self, url: str):
        super().__init__(f"request timed out: {_host_of(url)}", url)


class ResponseStatusCodeError(RequestError):
    """The node answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int, headers: dict[str, str], body: str):
        super().__init__(f"http status {status_code} from {_host_of(url)}", url)
        self.status_code = status_code
        self.headers = headers
        self.body = body


def _host_of(url: str) -> str:
    return urlparse(url).hostname or ""


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url)
        parsed.port  # raises on a malformed port
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def should_use_proxy(url: str, no_proxy: str | None = None) -> bool:
    """Whether a request to url may go through the configured proxy, honoring NO_PROXY."""
    hostname = _host_of(url)
    if hostname in _LOCAL_HOSTS or no_proxy == "*":
        return False
    if no_proxy:
        excluded = {part.strip() for part in no_proxy.split(",") if part.strip()}
        if hostname in excluded:
            return False
    return True


def select_transport_kind(url: str, *, http_proxy: str | None = None, no_proxy: str | None = None) -> TransportKind:
    """Pick a pooled or a proxied dispatcher for url. Pure: no environment access."""
    if http_proxy and should_use_proxy(url, no_proxy):
        return TransportKind.PROXY
    return TransportKind.POOL


def get_dispatcher(
    url: str,
    kind: TransportKind,
    *,
    proxy: str | None = None,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """
    Build the dispatcher shared by every request of one provider.

    Args:
        url: Node URL, used for logging only.
        kind: Result of select_transport_kind.
        proxy: Proxy URL, required for TransportKind.PROXY.
        timeout: Per-attempt timeout in seconds.
    """
    effective_timeout = DEFAULT_TIMEOUT_SECONDS if timeout is None else timeout
    if kind is TransportKind.PROXY:
        if not proxy:
            raise ValueError("proxy URL is required for a proxy dispatcher")
        logger.debug(f"Using proxy dispatcher for {_host_of(url)}")
        return httpx.AsyncClient(proxy=proxy, timeout=effective_timeout, trust_env=False)
    logger.debug(f"Using pooled dispatcher for {_host_of(url)}")
    return httpx.AsyncClient(
        timeout=effective_timeout,
        limits=httpx.Limits(max_connections=DEFAULT_MAX_CONNECTIONS),
        trust_env=False,
    )


def _is_connection_refused(exc: BaseException) -> bool:
    current: BaseException | None = exc
    seen: set[int] = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, builtins.ConnectionRefusedError):
            return True
        if "refused" in str(current).lower():
            return True
        current = current.__cause__ or current.__context__
    return False


async def post_json_request(
    url: str,
    body: Any,
    *,
    dispatcher: httpx.AsyncClient,
    extra_headers: dict[str, str] | None = None,
) -> httpx.Response:
    """
    POST body as JSON and return the response.

    Raises:
        ConnectionRefusedError: the node refused the connection.
        RequestTimeoutError: the attempt timed out.
        ResponseStatusCodeError: the node answered with a non-2xx status.
    Other httpx errors propagate unchanged.
    """
    headers = {"Content-Type": "application/json", **(extra_headers or {})}
    try:
        resp = await dispatcher.post(url, content=json.dumps(body), headers=headers)
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError(url) from exc
    except httpx.ConnectError as exc:
        if _is_connection_refused(exc):
            raise ConnectionRefusedError(url) from exc
        raise

    if not resp.is_success:
        raise ResponseStatusCodeError(
            url,
            resp.status_code,
            {k.lower(): v for k, v in resp.headers.items()},
            resp.text,
        )
    return resp
