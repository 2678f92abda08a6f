"""MCP tool server: JSON-RPC dispatch over stdio or HTTP/SSE."""

__version__ = "0.1.0"
