"""noderpc - JSON-RPC over HTTP client for remote nodes."""

__version__ = "0.1.0"
__logo__ = "⛓"
