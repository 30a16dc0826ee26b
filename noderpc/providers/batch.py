"""Correlate batch responses with the calls that produced them."""

from __future__ import annotations

from collections.abc import Sequence

from noderpc.rpc.protocol import FailureResponse, RpcId, RpcResponse, SuccessResponse, is_failure
from noderpc.utils.exceptions import ResponseIdMismatchError


def _key(rpc_id: RpcId) -> str:
    # nodes may echo numeric ids as strings
    return f"{rpc_id}"


def _positions(call_ids: Sequence[RpcId]) -> dict[str, int]:
    return {_key(rpc_id): index for index, rpc_id in enumerate(call_ids)}


def first_failure(responses: Sequence[RpcResponse], call_ids: Sequence[RpcId]) -> FailureResponse | None:
    """The failure belonging to the earliest submitted call; failures with unknown ids rank last."""
    positions = _positions(call_ids)
    failures = [r for r in responses if is_failure(r)]
    if not failures:
        return None
    return min(failures, key=lambda r: positions.get(_key(r.id), len(call_ids)))


def restore_order(responses: Sequence[SuccessResponse], call_ids: Sequence[RpcId]) -> list[SuccessResponse]:
    """
    Return responses in submission order.

    Indexes by an explicit id -> position mapping rather than sorting ids.

    Raises:
        ResponseIdMismatchError: a submitted id has no response, or a
            response id is unknown or duplicated.
    """
    positions = _positions(call_ids)
    ordered: list[SuccessResponse | None] = [None] * len(call_ids)
    for response in responses:
        index = positions.get(_key(response.id))
        if index is None or ordered[index] is not None:
            raise ResponseIdMismatchError(list(call_ids), [r.id for r in responses])
        ordered[index] = response

    if any(item is None for item in ordered):
        raise ResponseIdMismatchError(list(call_ids), [r.id for r in responses])
    return [item for item in ordered if item is not None]
