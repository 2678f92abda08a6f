"""
Process entry: build the tool registry, pick a transport, run it.

stdio is the default (what editor MCP integrations launch).  HTTP/SSE is used
when it is both requested (``--http``) and enabled in the config.
"""
from __future__ import annotations

import asyncio
import logging
import sys

import uvicorn

from . import __version__
from .config import ServerConfig
from .dispatcher import Dispatcher
from .tools import build_registry
from .transports.sse import create_app
from .transports.stdio import run_stdio

log = logging.getLogger("devtools-mcp")


def configure_logging(level: str = "INFO") -> None:
    # stderr only: stdout is the protocol channel in stdio mode.
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_dispatcher(config: ServerConfig) -> Dispatcher:
    return Dispatcher(
        build_registry(config),
        tool_timeout=config.tool_deadline,
        server_version=__version__,
    )


def run_http(dispatcher: Dispatcher, config: ServerConfig) -> None:
    app = create_app(dispatcher, config)
    log.info("MCP server running at http://%s:%d/mcp", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


def serve(config: ServerConfig, *, http_requested: bool = False) -> None:
    dispatcher = build_dispatcher(config)
    if http_requested and config.http_enabled:
        run_http(dispatcher, config)
        return
    if http_requested:
        log.warning("HTTP mode is disabled in the config (http_enabled: false); using stdio")
    log.info("devtools-mcp %s running (transport: stdio, tools: %d)", __version__, len(dispatcher.registry))
    asyncio.run(run_stdio(dispatcher))
