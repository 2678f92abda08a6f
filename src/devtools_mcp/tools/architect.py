"""Architect tool: asks an LLM for a step-by-step plan for a task plus code."""
from __future__ import annotations

from typing import Any

from ..config import ServerConfig
from ..content import ToolResult
from ..registry import ToolDescriptor, ToolHandler
from ..schema import Field, ObjectNode, StringNode
from .llm import LLMClient, LLMClientError

NAME = "architect"

SYSTEM_PROMPT = (
    "You are an expert software architect. Given a task and some code, outline the steps "
    "that an AI coding agent should take to complete or improve the code."
)


def descriptor() -> ToolDescriptor:
    return ToolDescriptor(
        name=NAME,
        description="Analyzes a task description plus some code, then outlines steps for an AI coding agent.",
        parameter_schema=ObjectNode(fields=(
            Field("task", StringNode(
                description="Description of the task",
                min_length=1, min_length_message="Task description is required.",
            )),
            Field("code", StringNode(
                description="Concatenated code from one or more files",
                min_length=1, min_length_message="Code string is required (one or more files concatenated).",
            )),
        )),
    )


def make_handler(config: ServerConfig, client: LLMClient | None = None) -> ToolHandler:
    llm = client or LLMClient(config.llm_base_url, config.llm_api_key)

    async def run(args: dict[str, Any]) -> ToolResult:
        user_prompt = f"Task: {args['task']}\n\nCode:\n{args['code']}\n\nPlease provide a step-by-step plan."
        try:
            reply = await llm.chat_once(
                config.model_architect,
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except LLMClientError as exc:
            return ToolResult.text(f"OpenAI Error: {exc}")
        return ToolResult.text(reply or "No response from model.")

    return run
