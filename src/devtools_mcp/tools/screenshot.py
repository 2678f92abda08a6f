"""
Screenshot tool: full-page PNG of a URL, or of a path on the local dev server.

Takes either ``url`` or ``relativePath`` (appended to the configured local
base URL), saves the PNG to ``fullPathToScreenshot`` and returns a text note
followed by the inline image.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from playwright.async_api import async_playwright

from ..config import ServerConfig
from ..content import ImagePart, TextPart, ToolResult
from ..registry import ToolDescriptor, ToolHandler
from ..schema import Field, ObjectNode, StringNode
from .errors import ToolInputError

NAME = "screenshot"

_LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

Capture = Callable[[str], Awaitable[bytes]]


def descriptor(config: ServerConfig) -> ToolDescriptor:
    base = config.resolved_screenshot_base_url
    return ToolDescriptor(
        name=NAME,
        description=f"Take a screenshot of a URL or a local path (relative URL appended to {base}).",
        parameter_schema=ObjectNode(fields=(
            Field("url", StringNode(description="Full URL to screenshot (e.g., https://example.com)"),
                  required=False),
            Field("relativePath", StringNode(
                description=f"Relative path appended to {base} (e.g., 'dashboard' becomes {base}/dashboard)",
            ), required=False),
            Field("fullPathToScreenshot", StringNode(
                description="Path where the screenshot will be saved (e.g., /tmp/screenshot.png)",
            )),
        )),
    )


def resolve_url(args: dict[str, Any], base_url: str) -> str:
    if args.get("url"):
        return args["url"]
    relative = args.get("relativePath")
    if not relative:
        raise ToolInputError("Must provide either 'url' or 'relativePath'")
    return f"{base_url.rstrip('/')}/{relative.lstrip('/')}"


async def capture_png(url: str) -> bytes:
    """Render *url* in headless Chromium and return a full-page PNG."""
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=True, args=_LAUNCH_ARGS)
        try:
            page = await browser.new_page()
            await page.goto(url)
            return await page.screenshot(full_page=True)
        finally:
            await browser.close()


def make_handler(config: ServerConfig, capture: Capture = capture_png) -> ToolHandler:
    base_url = config.resolved_screenshot_base_url

    async def run(args: dict[str, Any]) -> ToolResult:
        final_url = resolve_url(args, base_url)
        target = Path(args["fullPathToScreenshot"]).expanduser().resolve()
        png = await capture(final_url)
        await asyncio.to_thread(target.write_bytes, png)
        return ToolResult(parts=(
            TextPart(f"Screenshot of {final_url} has been captured and saved to {target}."),
            ImagePart.from_bytes(png, "image/png"),
        ))

    return run
