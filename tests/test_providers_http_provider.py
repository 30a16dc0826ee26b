import asyncio
import json
from typing import Any

import httpx
import pytest

from noderpc import __version__
from noderpc.config.schema import Config, NetworkConfig, ProxyConfig, RetryConfig
from noderpc.providers.http import HttpProvider
from noderpc.providers.retry import RetryPolicy
from noderpc.transport.request import ResponseStatusCodeError, TransportKind
from noderpc.utils.exceptions import (
    InvalidJsonResponseError,
    InvalidUrlError,
    NetworkConnectionRefusedError,
    NetworkTimeoutError,
    ProviderError,
    ProviderErrorCode,
    ResponseIdMismatchError,
)

NODE_URL = "http://node.example:8545"


class _RecordingSleep:
    def __init__(self) -> None:
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class _Node:
    """Scripted node: each handler entry answers one exchange; the last one repeats."""

    def __init__(self, *answers) -> None:
        self.answers = list(answers)
        self.bodies: list[Any] = []
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        self.bodies.append(body)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        return answer(body, request)


def _ok(result_for=lambda call: f"result:{call['method']}"):
    def answer(body, request):
        if isinstance(body, list):
            return httpx.Response(200, json=[_success(c, result_for(c)) for c in body])
        return httpx.Response(200, json=_success(body, result_for(body)))

    return answer


def _success(call: dict, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": call["id"], "result": result}


def _status(code: int, headers: dict[str, str] | None = None):
    return lambda body, request: httpx.Response(code, headers=headers or {})


def _provider(node, **kwargs) -> HttpProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(node))
    kwargs.setdefault("sleep", _RecordingSleep())
    extra_headers = kwargs.pop("extra_headers", None)
    return HttpProvider(NODE_URL, "testnet", extra_headers, client, owns_dispatcher=True, **kwargs)


@pytest.mark.asyncio
async def test_single_call_resolves_to_result() -> None:
    node = _Node(_ok())
    async with _provider(node) as provider:
        assert await provider.call("m1") == "result:m1"

    assert node.bodies == [{"jsonrpc": "2.0", "id": 1, "method": "m1", "params": []}]


@pytest.mark.asyncio
async def test_ids_start_at_one_and_are_consecutive_across_calls_and_batches() -> None:
    node = _Node(_ok(lambda call: call["id"]))
    async with _provider(node) as provider:
        assert await provider.call("a") == 1
        assert await provider.call_batch([("b", None), ("c", ["x"]), ("d", None)]) == [2, 3, 4]
        assert await provider.call("e") == 5


@pytest.mark.asyncio
async def test_headers_carry_user_agent_and_extra_headers() -> None:
    node = _Node(_ok())
    async with _provider(node, extra_headers={"X-Api-Key": "k"}) as provider:
        await provider.call("m1")

    headers = node.requests[0].headers
    assert headers["user-agent"] == f"noderpc {__version__}"
    assert headers["x-api-key"] == "k"
    assert headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_extra_headers_override_user_agent() -> None:
    node = _Node(_ok())
    async with _provider(node, extra_headers={"User-Agent": "custom"}) as provider:
        await provider.call("m1")
    assert node.requests[0].headers["user-agent"] == "custom"


@pytest.mark.asyncio
async def test_failure_response_raises_provider_error_unchanged() -> None:
    def answer(body, request):
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 3, "message": "execution reverted", "data": "0x01"}},
        )

    async with _provider(_Node(answer)) as provider:
        with pytest.raises(ProviderError) as exc_info:
            await provider.call("eth_call", [{"to": "0x0"}])

    assert exc_info.value.code == 3
    assert exc_info.value.data == "0x01"


@pytest.mark.asyncio
async def test_single_call_with_foreign_response_id_is_rejected() -> None:
    answer = lambda body, request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 99, "result": 1})
    async with _provider(_Node(answer)) as provider:
        with pytest.raises(ResponseIdMismatchError):
            await provider.call("m1")


@pytest.mark.asyncio
async def test_single_call_answered_with_array_is_invalid() -> None:
    answer = lambda body, request: httpx.Response(200, json=[_success(body, 1)])
    async with _provider(_Node(answer)) as provider:
        with pytest.raises(InvalidJsonResponseError):
            await provider.call("m1")


@pytest.mark.asyncio
async def test_batch_results_follow_submission_order() -> None:
    def answer(body, request):
        by_id = {c["id"]: _success(c, f"result:{c['method']}") for c in body}
        return httpx.Response(200, json=[by_id[3], by_id[1], by_id[2]])

    async with _provider(_Node(answer)) as provider:
        results = await provider.call_batch([("m1", None), ("m2", None), ("m3", None)])

    assert results == ["result:m1", "result:m2", "result:m3"]


@pytest.mark.asyncio
async def test_batch_results_match_calls_for_shuffled_responses() -> None:
    def answer(body, request):
        responses = [_success(c, c["params"][0]) for c in body]
        return httpx.Response(200, json=list(reversed(responses[::2])) + responses[1::2])

    batch = [("echo", [i * 10]) for i in range(9)]
    async with _provider(_Node(answer)) as provider:
        results = await provider.call_batch(batch)

    assert results == [i * 10 for i in range(9)]


@pytest.mark.asyncio
async def test_batch_with_one_failure_fails_as_a_whole() -> None:
    def answer(body, request):
        out = [_success(c, "ok") for c in body]
        out[1] = {"jsonrpc": "2.0", "id": body[1]["id"], "error": {"code": -32602, "message": "bad params"}}
        return httpx.Response(200, json=out)

    async with _provider(_Node(answer)) as provider:
        with pytest.raises(ProviderError) as exc_info:
            await provider.call_batch([("a", None), ("b", None), ("c", None)])

    assert exc_info.value.code == -32602


@pytest.mark.asyncio
async def test_batch_failure_reported_is_lowest_id() -> None:
    def answer(body, request):
        failures = [
            {"jsonrpc": "2.0", "id": c["id"], "error": {"code": -c["id"], "message": "x"}} for c in body
        ]
        return httpx.Response(200, json=list(reversed(failures)))

    async with _provider(_Node(answer)) as provider:
        with pytest.raises(ProviderError) as exc_info:
            await provider.call_batch([("a", None), ("b", None), ("c", None)])

    assert exc_info.value.code == -1


@pytest.mark.asyncio
async def test_batch_rejected_with_single_error_object() -> None:
    answer = lambda body, request: httpx.Response(
        200, json={"jsonrpc": "2.0", "id": None, "error": {"code": -32600, "message": "batch too large"}}
    )
    async with _provider(_Node(answer)) as provider:
        with pytest.raises(ProviderError) as exc_info:
            await provider.call_batch([("a", None), ("b", None)])
    assert exc_info.value.code == -32600


@pytest.mark.asyncio
async def test_batch_missing_response_is_rejected() -> None:
    answer = lambda body, request: httpx.Response(200, json=[_success(body[0], 1)])
    async with _provider(_Node(answer)) as provider:
        with pytest.raises(ResponseIdMismatchError):
            await provider.call_batch([("a", None), ("b", None)])


@pytest.mark.asyncio
async def test_empty_batch_makes_no_request() -> None:
    node = _Node(_ok())
    async with _provider(node) as provider:
        assert await provider.call_batch([]) == []
        assert await provider.call("m1") == "result:m1"
    assert len(node.requests) == 1
    assert node.bodies[0]["id"] == 1


@pytest.mark.asyncio
async def test_rate_limited_call_waits_for_retry_after_then_succeeds() -> None:
    node = _Node(_status(429, {"Retry-After": "2"}), _ok())
    sleep = _RecordingSleep()
    events: list[tuple[str, dict]] = []

    async with _provider(node, sleep=sleep, on_event=lambda name, payload: events.append((name, payload))) as provider:
        assert await provider.call("m1") == "result:m1"

    assert sleep.waits == [2]
    assert events == [("retry", {"retry_count": 1, "wait_seconds": 2, "hostname": "node.example"})]
    # the same call is resent
    assert node.bodies[0] == node.bodies[1]


@pytest.mark.asyncio
async def test_persistent_rate_limit_raises_limit_exceeded() -> None:
    node = _Node(_status(429))
    sleep = _RecordingSleep()

    async with _provider(node, sleep=sleep) as provider:
        with pytest.raises(ProviderError) as exc_info:
            await provider.call("m1")

    assert exc_info.value.code == ProviderErrorCode.LIMIT_EXCEEDED
    assert exc_info.value.data == {"hostname": "node.example", "retryAfterSeconds": 5}
    assert len(node.requests) == 8
    assert sleep.waits == [1, 2, 4, 5, 5, 5, 5]
    assert all(body == node.bodies[0] for body in node.bodies)


@pytest.mark.asyncio
async def test_retry_after_above_cap_stops_immediately() -> None:
    node = _Node(_status(429, {"Retry-After": "30"}))
    sleep = _RecordingSleep()

    async with _provider(node, sleep=sleep) as provider:
        with pytest.raises(ProviderError) as exc_info:
            await provider.call("m1")

    assert exc_info.value.data == {"hostname": "node.example", "retryAfterSeconds": 30}
    assert len(node.requests) == 1
    assert sleep.waits == []


@pytest.mark.asyncio
async def test_rate_limited_batch_is_resent_whole() -> None:
    node = _Node(_status(429, {"Retry-After": "1"}), _ok())
    async with _provider(node) as provider:
        assert await provider.call_batch([("a", None), ("b", None)]) == ["result:a", "result:b"]
    assert node.bodies[0] == node.bodies[1]
    assert [c["id"] for c in node.bodies[1]] == [1, 2]


@pytest.mark.asyncio
async def test_custom_retry_policy_limits_attempts() -> None:
    node = _Node(_status(429))
    async with _provider(node, retry_policy=RetryPolicy(max_retries=1)) as provider:
        with pytest.raises(ProviderError):
            await provider.call("m1")
    assert len(node.requests) == 3


@pytest.mark.asyncio
async def test_connection_refused_is_not_retried() -> None:
    attempts = []

    def refused(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    async with _provider(refused) as provider:
        with pytest.raises(NetworkConnectionRefusedError) as exc_info:
            await provider.call("m1")

    assert exc_info.value.details == {"network": "testnet"}
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_timeout_is_not_retried() -> None:
    attempts = []

    def slow(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    async with _provider(slow) as provider:
        with pytest.raises(NetworkTimeoutError):
            await provider.call("m1")
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_other_http_errors_pass_through() -> None:
    node = _Node(_status(503))
    async with _provider(node) as provider:
        with pytest.raises(ResponseStatusCodeError) as exc_info:
            await provider.call("m1")
    assert exc_info.value.status_code == 503
    assert len(node.requests) == 1


@pytest.mark.asyncio
async def test_concurrent_calls_get_distinct_ids() -> None:
    async def answer_later(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        await asyncio.sleep(0)
        return httpx.Response(200, json=_success(body, body["id"]))

    client = httpx.AsyncClient(transport=httpx.MockTransport(answer_later))
    async with HttpProvider(NODE_URL, "testnet", None, client, owns_dispatcher=True) as provider:
        results = await asyncio.gather(*(provider.call("eth_chainId") for _ in range(25)))

    assert sorted(results) == list(range(1, 26))


@pytest.mark.asyncio
async def test_rate_limit_wait_does_not_block_other_calls() -> None:
    released = asyncio.Event()
    waiting = asyncio.Event()
    limited_once = []

    async def gated_sleep(seconds: float) -> None:
        waiting.set()
        await released.wait()

    def answer(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["method"] == "slow" and not limited_once:
            limited_once.append(True)
            return httpx.Response(429, headers={"Retry-After": "1"})
        return httpx.Response(200, json=_success(body, body["method"]))

    client = httpx.AsyncClient(transport=httpx.MockTransport(answer))
    async with HttpProvider(NODE_URL, "testnet", None, client, sleep=gated_sleep, owns_dispatcher=True) as provider:
        slow = asyncio.create_task(provider.call("slow"))
        await waiting.wait()
        assert await provider.call("fast") == "fast"
        assert not slow.done()
        released.set()
        assert await slow == "slow"


def test_create_rejects_invalid_url() -> None:
    with pytest.raises(InvalidUrlError):
        HttpProvider.create("not a url", "testnet")


@pytest.mark.asyncio
async def test_create_selects_transport_once_from_proxy_config() -> None:
    seen = []

    def selector(url, *, http_proxy=None, no_proxy=None):
        seen.append((url, http_proxy, no_proxy))
        return TransportKind.PROXY

    provider = HttpProvider.create(
        NODE_URL,
        "testnet",
        proxy=ProxyConfig(http_proxy="http://proxy:3128", no_proxy="other.example"),
        transport_selector=selector,
    )
    await provider.aclose()

    assert seen == [(NODE_URL, "http://proxy:3128", "other.example")]
    assert provider._dispatcher.is_closed


@pytest.mark.asyncio
async def test_create_reads_proxy_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("http_proxy", "http://proxy:3128")
    seen = []

    def selector(url, *, http_proxy=None, no_proxy=None):
        seen.append(http_proxy)
        return TransportKind.POOL

    async with HttpProvider.create(NODE_URL, "testnet", transport_selector=selector):
        pass
    assert seen == ["http://proxy:3128"]


@pytest.mark.asyncio
async def test_caller_owned_dispatcher_is_not_closed() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(_Node(_ok())))
    async with HttpProvider(NODE_URL, "testnet", None, client):
        pass
    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_from_config_applies_network_and_retry_settings() -> None:
    config = Config(
        network=NetworkConfig(url=NODE_URL, name="devnet", extra_headers={"X-Key": "v"}, timeout=7.0),
        retry=RetryConfig(max_retries=2, max_wait_seconds=3),
        proxy=ProxyConfig(),
    )
    async with HttpProvider.from_config(config) as provider:
        assert provider.url == NODE_URL
        assert provider.network_name == "devnet"
        assert provider._retry_policy == RetryPolicy(max_retries=2, max_wait_seconds=3)
        assert provider._extra_headers == {"X-Key": "v"}
        assert provider._dispatcher.timeout.read == 7.0
