from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH = Path.home() / ".config" / "devtools-mcp" / "config.yml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ServerConfig:
    http_enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3333
    credential_header: str = "x-api-key"
    keepalive_interval: float = 15.0
    # Per-call deadline for tool handlers, in seconds.  0 disables it.
    tool_timeout: float = 180.0
    log_level: str = "INFO"
    llm_base_url: str = "https://api.openai.com"
    # Read from OPENAI_API_KEY only; never written back to the config file.
    llm_api_key: str = ""
    model_architect: str = "o3-mini"      # options: o3-mini, o1-mini, o1
    model_api_tests: str = "o3-mini"
    # Base for screenshot 'relativePath'; empty means http://localhost:<port>.
    screenshot_base_url: str = ""

    @property
    def resolved_screenshot_base_url(self) -> str:
        return (self.screenshot_base_url or f"http://localhost:{self.port}").rstrip("/")

    @property
    def tool_deadline(self) -> float | None:
        return self.tool_timeout if self.tool_timeout > 0 else None


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return default


def _as_str(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default


def _as_number(value: Any, default: float, *, minimum: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number >= minimum else default


def _validate(cfg: Mapping[str, Any]) -> dict[str, Any]:
    defaults = asdict(ServerConfig())
    merged = {**defaults, **{k: v for k, v in cfg.items() if k in defaults}}
    merged["http_enabled"] = _as_bool(merged["http_enabled"], defaults["http_enabled"])
    for key in ("host", "credential_header", "llm_base_url", "model_architect", "model_api_tests"):
        merged[key] = _as_str(merged[key], defaults[key])
    merged["credential_header"] = merged["credential_header"].lower()
    merged["llm_base_url"] = merged["llm_base_url"].rstrip("/")
    raw_port = _as_number(merged["port"], defaults["port"], minimum=1)
    merged["port"] = int(raw_port) if raw_port <= 65535 and raw_port == int(raw_port) else defaults["port"]
    merged["keepalive_interval"] = _as_number(merged["keepalive_interval"], defaults["keepalive_interval"], minimum=0.1)
    merged["tool_timeout"] = _as_number(merged["tool_timeout"], defaults["tool_timeout"], minimum=0)
    level = str(merged["log_level"]).upper()
    merged["log_level"] = level if level in _LOG_LEVELS else defaults["log_level"]
    merged["llm_api_key"] = merged["llm_api_key"] if isinstance(merged["llm_api_key"], str) else ""
    merged["screenshot_base_url"] = (
        merged["screenshot_base_url"].strip() if isinstance(merged["screenshot_base_url"], str) else ""
    )
    return merged


_ENV_OVERRIDES = {
    "MCP_HTTP_ENABLED": "http_enabled",
    "MCP_HOST": "host",
    "MCP_PORT": "port",
    "MCP_TOOL_TIMEOUT": "tool_timeout",
    "MCP_LOG_LEVEL": "log_level",
    "OPENAI_BASE_URL": "llm_base_url",
    "OPENAI_API_KEY": "llm_api_key",
}


def load_config(
    path: Path = CONFIG_PATH,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> ServerConfig:
    """Build the server config: YAML file, then environment, then *overrides*.

    A missing file is not an error.  Values that fail validation silently fall
    back to their defaults.
    """
    env = os.environ if env is None else env
    raw: dict[str, Any] = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if isinstance(loaded, dict):
            raw.update(loaded)
    raw.pop("llm_api_key", None)
    for var, key in _ENV_OVERRIDES.items():
        if env.get(var):
            raw[key] = env[var]
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return ServerConfig(**_validate(raw))
