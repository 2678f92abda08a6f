"""Code review tool: returns ``git diff`` of a working tree with review instructions."""
from __future__ import annotations

import asyncio
from typing import Any

from ..content import ToolResult
from ..registry import ToolDescriptor, ToolHandler
from ..schema import Field, ObjectNode, StringNode

NAME = "code-review"

INSTRUCTIONS = "Review this diff for any obvious issues. Fix them if found, then finalize the changes."


def descriptor() -> ToolDescriptor:
    return ToolDescriptor(
        name=NAME,
        description="Run a git diff against main on a specified file and provide instructions to review/fix issues.",
        parameter_schema=ObjectNode(fields=(
            Field("folderPath", StringNode(
                description="Path to the full root directory of the repository to diff against main",
                min_length=1, min_length_message="A folder path is required.",
            )),
        )),
    )


async def git_diff(folder: str) -> str:
    """Return ``git -C <folder> diff`` output; failures come back as text."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", "-C", folder, "diff",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        return f"Error running git diff: {exc}"
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip() or f"exit status {proc.returncode}"
        return f"Error running git diff: {detail}"
    return stdout.decode(errors="replace")


def make_handler(diff=git_diff) -> ToolHandler:
    async def run(args: dict[str, Any]) -> ToolResult:
        output = await diff(args["folderPath"])
        return ToolResult.text(f"Git Diff Output:\n{output}\n\nInstructions:\n{INSTRUCTIONS}")

    return run
