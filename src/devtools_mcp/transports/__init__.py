from .sse import create_app
from .stdio import StdioTransport, run_stdio

__all__ = ["StdioTransport", "create_app", "run_stdio"]
