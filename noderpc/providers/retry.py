"""Wait/stop policy for requests the node answered with HTTP 429."""

from __future__ import annotations

import re
from dataclasses import dataclass

MAX_RETRIES = 6
MAX_RETRY_WAIT_TIME_SECONDS = 5

_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)")


def parse_retry_after(value: str | None) -> int | None:
    """Leading-integer parse of a retry-after header; None when it has no integer prefix."""
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    return int(match.group(1))


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounds both the number of retries and the longest single wait.

    A server-supplied hint is honored verbatim by compute_wait_seconds; a hint
    above max_wait_seconds makes should_retry give up instead of waiting.
    """

    max_retries: int = MAX_RETRIES
    max_wait_seconds: int = MAX_RETRY_WAIT_TIME_SECONDS

    def compute_wait_seconds(self, retry_after_hint: str | None, retry_count: int) -> int:
        parsed = parse_retry_after(retry_after_hint)
        if parsed is None:
            # exponential backoff when the header is absent or unparsable
            return min(2**retry_count, self.max_wait_seconds)
        return parsed

    def should_retry(self, wait_seconds: float, retry_count: int) -> bool:
        if retry_count > self.max_retries:
            return False
        if wait_seconds > self.max_wait_seconds:
            return False
        return True


DEFAULT_RETRY_POLICY = RetryPolicy()
