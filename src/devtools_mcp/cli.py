from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import CONFIG_PATH, load_config
from .server import configure_logging, serve

log = logging.getLogger("devtools-mcp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devtools-mcp",
        description="MCP server exposing screenshot, architect, code-review and apitests tools.",
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Serve HTTP/SSE instead of stdio (requires http_enabled in the config).",
    )
    parser.add_argument("--port", type=int, help="HTTP port (default: 3333 or config value)")
    parser.add_argument("--host", help="HTTP bind address (default: 0.0.0.0 or config value)")
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"YAML config file (default: {CONFIG_PATH})",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config, port=args.port, host=args.host)
        configure_logging(config.log_level)
        serve(config, http_requested=args.http)
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        configure_logging()
        log.critical("FATAL ERROR: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
