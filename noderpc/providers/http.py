"""
JSON-RPC provider over HTTP.

Assigns call ids, sends single calls and batches through a shared dispatcher,
retries requests the node rate-limits (HTTP 429) and returns batch results in
submission order.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable, Sequence
from typing import Any
from urllib.parse import urlparse

import httpx
from loguru import logger

from noderpc import __version__
from noderpc.config.schema import Config, ProxyConfig
from noderpc.providers.batch import first_failure, restore_order
from noderpc.providers.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from noderpc.rpc.protocol import (
    RpcResponse,
    build_call,
    is_failure,
    parse_response,
)
from noderpc.transport.request import (
    RequestError,
    TransportKind,
    get_dispatcher,
    is_valid_url,
    post_json_request,
    select_transport_kind,
)
from noderpc.utils.exceptions import (
    InvalidJsonResponseError,
    InvalidUrlError,
    RateLimitSignal,
    classify_transport_error,
    limit_exceeded_error,
    provider_error_from_failure,
)

EventCallback = Callable[[str, dict[str, Any]], None]
SleepFn = Callable[[float], Awaitable[Any]]
TransportSelector = Callable[..., TransportKind]


class HttpProvider:
    """Request coordinator for one remote node."""

    def __init__(
        self,
        url: str,
        network_name: str,
        extra_headers: dict[str, str] | None,
        dispatcher: httpx.AsyncClient,
        *,
        retry_policy: RetryPolicy | None = None,
        on_event: EventCallback | None = None,
        sleep: SleepFn | None = None,
        owns_dispatcher: bool = False,
    ):
        """
        Prefer HttpProvider.create, which validates the URL and builds the dispatcher.

        Args:
            url: Node endpoint.
            network_name: Name reported in connection errors.
            extra_headers: Static headers added to every request.
            dispatcher: Shared HTTP client; not closed unless owns_dispatcher.
            retry_policy: Rate-limit retry bounds.
            on_event: Observer notified as on_event(name, payload).
            sleep: Awaitable used to wait before a retry.
            owns_dispatcher: Close the dispatcher in aclose().
        """
        self._url = url
        self._network_name = network_name
        self._extra_headers = dict(extra_headers or {})
        self._dispatcher = dispatcher
        self._retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self._on_event = on_event
        self._sleep = sleep or asyncio.sleep
        self._owns_dispatcher = owns_dispatcher
        self._ids = itertools.count(1)

    @classmethod
    def create(
        cls,
        url: str,
        network_name: str,
        extra_headers: dict[str, str] | None = None,
        timeout: float | None = None,
        *,
        proxy: ProxyConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        on_event: EventCallback | None = None,
        transport_selector: TransportSelector = select_transport_kind,
    ) -> HttpProvider:
        """
        Validate url, pick a pooled or proxied dispatcher once and build the provider.

        Raises:
            InvalidUrlError: url is not an absolute http(s) URL.
        """
        if not is_valid_url(url):
            raise InvalidUrlError(url)

        proxy_config = proxy if proxy is not None else ProxyConfig()
        kind = transport_selector(url, http_proxy=proxy_config.http_proxy, no_proxy=proxy_config.no_proxy)
        dispatcher = get_dispatcher(url, kind, proxy=proxy_config.http_proxy, timeout=timeout)

        return cls(
            url,
            network_name,
            extra_headers,
            dispatcher,
            retry_policy=retry_policy,
            on_event=on_event,
            owns_dispatcher=True,
        )

    @classmethod
    def from_config(cls, config: Config, *, on_event: EventCallback | None = None) -> HttpProvider:
        network = config.network
        return cls.create(
            network.url,
            network.name,
            network.extra_headers,
            network.timeout,
            proxy=config.proxy,
            retry_policy=RetryPolicy(
                max_retries=config.retry.max_retries,
                max_wait_seconds=config.retry.max_wait_seconds,
            ),
            on_event=on_event,
        )

    @property
    def url(self) -> str:
        return self._url

    @property
    def network_name(self) -> str:
        return self._network_name

    async def aclose(self) -> None:
        if self._owns_dispatcher:
            await self._dispatcher.aclose()

    async def __aenter__(self) -> HttpProvider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _next_id(self) -> int:
        return next(self._ids)

    def _emit(self, name: str, payload: dict[str, Any]) -> None:
        if self._on_event is not None:
            self._on_event(name, payload)

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": f"noderpc {__version__}", **self._extra_headers}

    async def call(self, method: str, params: Any = None) -> Any:
        """
        Send one call and return its result.

        Raises:
            ProviderError: the node answered with an error object, or kept
                rate-limiting past the retry policy (LIMIT_EXCEEDED).
            NetworkConnectionRefusedError, NetworkTimeoutError: transport failures.
        """
        rpc_call = build_call(self._next_id(), method, params)
        logger.debug(f"{self._network_name}: {method} (id={rpc_call.id})")

        response = await self._fetch(rpc_call.to_dict(), expect_batch=False)
        if is_failure(response):
            raise provider_error_from_failure(response)

        return restore_order([response], [rpc_call.id])[0].result

    async def call_batch(self, batch: Sequence[tuple[str, Any]]) -> list[Any]:
        """
        Send calls as one batch and return their results in input order.

        The whole batch fails with the error of the earliest submitted call the
        node rejected; no partial result list is returned.
        """
        calls = [build_call(self._next_id(), method, params) for method, params in batch]
        if not calls:
            return []
        call_ids = [c.id for c in calls]
        logger.debug(f"{self._network_name}: batch of {len(calls)} (ids {call_ids[0]}..{call_ids[-1]})")

        responses = await self._fetch([c.to_dict() for c in calls], expect_batch=True)

        failure = first_failure(responses, call_ids)
        if failure is not None:
            raise provider_error_from_failure(failure)

        successes = [r for r in responses if not is_failure(r)]
        return [r.result for r in restore_order(successes, call_ids)]

    async def _fetch(self, body: Any, *, expect_batch: bool) -> Any:
        retry_count = 0
        while True:
            try:
                resp = await post_json_request(
                    self._url,
                    body,
                    dispatcher=self._dispatcher,
                    extra_headers=self._headers(),
                )
            except RequestError as exc:
                outcome = classify_transport_error(exc, self._network_name)
                if not isinstance(outcome, RateLimitSignal):
                    if outcome is None:
                        raise
                    raise outcome from exc

                wait_seconds = self._retry_policy.compute_wait_seconds(outcome.retry_after, retry_count)
                if not self._retry_policy.should_retry(wait_seconds, retry_count):
                    logger.warning(
                        f"{self._network_name}: rate limited by {self._hostname()}, "
                        f"giving up after {retry_count} retries"
                    )
                    raise limit_exceeded_error(self._hostname(), wait_seconds) from exc

                logger.debug(
                    f"{self._network_name}: rate limited, retry {retry_count + 1} in {wait_seconds}s"
                )
                self._emit(
                    "retry",
                    {"retry_count": retry_count + 1, "wait_seconds": wait_seconds, "hostname": self._hostname()},
                )
                await self._sleep(wait_seconds)
                retry_count += 1
                continue

            return self._parse(resp.text, expect_batch=expect_batch)

    @staticmethod
    def _parse(text: str, *, expect_batch: bool) -> RpcResponse | list[RpcResponse]:
        parsed = parse_response(text)
        if expect_batch:
            if isinstance(parsed, list):
                return parsed
            # nodes reject a whole batch with a single error object
            if is_failure(parsed):
                return [parsed]
            raise InvalidJsonResponseError(text)
        if isinstance(parsed, list):
            raise InvalidJsonResponseError(text)
        return parsed

    def _hostname(self) -> str | None:
        return urlparse(self._url).hostname
