"""JSON-RPC providers."""

from noderpc.providers.batch import first_failure, restore_order
from noderpc.providers.http import HttpProvider
from noderpc.providers.retry import RetryPolicy

__all__ = ["HttpProvider", "RetryPolicy", "first_failure", "restore_order"]
