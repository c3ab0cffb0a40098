"""Client library for a DEX chain: REST API queries and websocket JSON-RPC to a node."""

__version__ = "0.1.0"

__all__ = ["api", "events", "query", "results", "rpc", "validate", "wsrpc"]