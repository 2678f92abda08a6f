"""
API test generator tool.

Feeds an API spec (or endpoint code) to the LLM and returns a runnable test
suite.  When ``currentFilePath`` is given, the file, its relative imports and,
for ``contextType='folder'``, its sibling sources are sent along as context;
for ``contextType='endpoint'`` the route paths found in the file narrow the
prompt.  With ``testDir`` the generated suite is also written to disk.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..config import ServerConfig
from ..content import ToolResult
from ..registry import ToolDescriptor, ToolHandler
from ..schema import ArrayNode, EnumNode, Field, ObjectNode, StringNode
from .llm import LLMClient, LLMClientError

log = logging.getLogger("devtools-mcp.apitests")

NAME = "apitests"

FRAMEWORKS = ("jest", "mocha", "chai", "supertest", "playwright", "cypress")
OUTPUT_FORMATS = ("javascript", "typescript")
CONTEXT_TYPES = ("file", "endpoint", "folder")

MAX_RELATED_FILES = 5

_IMPORT_RE = re.compile(r"""(?:import|require).*?(?:from\s+['"](.+?)['"]|(['"])(.+?)\2)""")
_ROUTE_RE = re.compile(r"""\.(?:get|post|put|delete|patch)\(\s*['"]([^'"]+)['"]""")
_CODE_BLOCK_RE = re.compile(r"```(?:javascript|typescript|js|ts)?\s*([\s\S]*?)```")


def descriptor() -> ToolDescriptor:
    return ToolDescriptor(
        name=NAME,
        description=(
            "Analyzes API specifications or endpoint code and generates comprehensive test suites "
            "with edge cases, validations, and mocked dependencies."
        ),
        parameter_schema=ObjectNode(fields=(
            Field("spec", StringNode(
                description="OpenAPI/Swagger spec or API code to test",
                min_length=1, min_length_message="API specification or code is required.",
            )),
            Field("framework", EnumNode(FRAMEWORKS, description="Test framework"), default="jest"),
            Field("outputFormat", EnumNode(OUTPUT_FORMATS, description="Language of the generated tests"),
                  default="javascript"),
            Field("testDir", StringNode(description="Directory to save the generated test file in"),
                  required=False),
            Field("endpoints", ArrayNode(StringNode(), description="Endpoints to focus on"), required=False),
            Field("currentFilePath", StringNode(description="Path to the currently open file for context"),
                  required=False),
            Field("contextType", EnumNode(CONTEXT_TYPES, description="What type of context to focus on"),
                  default="file"),
            Field("projectRoot", StringNode(description="Root directory of the project"), required=False),
        )),
    )


def _file_ext(output_format: str) -> str:
    return "ts" if output_format == "typescript" else "js"


# ---------------------------------------------------------------------------
# Context gathering
# ---------------------------------------------------------------------------

def _resolve_import(base_dir: Path, import_path: str) -> Path | None:
    resolved = (base_dir / import_path).resolve()
    if not resolved.suffix:
        for candidate in (
            resolved.with_name(resolved.name + ".js"),
            resolved.with_name(resolved.name + ".ts"),
            resolved / "index.js",
            resolved / "index.ts",
        ):
            if candidate.is_file():
                return candidate
    return resolved if resolved.is_file() else None


def related_files(current_file: str, context_type: str) -> list[Path]:
    """Return up to five files worth sending as context, current file first."""
    found: list[Path] = []
    current = Path(current_file).expanduser().resolve()
    try:
        if current.is_file():
            found.append(current)
            source = current.read_text(encoding="utf-8", errors="replace")
            for match in _IMPORT_RE.finditer(source):
                import_path = match.group(1) or match.group(3)
                if not import_path or not import_path.startswith("."):
                    continue
                resolved = _resolve_import(current.parent, import_path)
                if resolved is not None and resolved not in found:
                    found.append(resolved)
        if context_type == "folder" and current.parent.is_dir():
            for sibling in sorted(current.parent.iterdir()):
                if sibling.is_file() and sibling.suffix in {".js", ".ts"} and sibling not in found:
                    found.append(sibling)
    except OSError as exc:
        log.warning("Failed to collect related files: %s", exc)
    return found[:MAX_RELATED_FILES]


def extract_endpoints(source: str) -> list[str]:
    return [m.group(1) for m in _ROUTE_RE.finditer(source)]


def suggested_file_name(current_file: str | None, endpoints: list[str]) -> str:
    if not current_file:
        return "api"
    stem = Path(current_file).stem
    if "controller" in stem or "route" in stem:
        return stem
    if len(endpoints) == 1:
        return endpoints[0].strip("/").replace("/", "-")
    return stem


def extract_code(reply: str) -> str:
    match = _CODE_BLOCK_RE.search(reply)
    return match.group(1).strip() if match else reply


@dataclass
class PromptContext:
    context_data: str = ""
    endpoints: list[str] = field(default_factory=list)
    file_name: str = "api"

    @property
    def focus_on_spec(self) -> bool:
        return not self.context_data


def gather_context(args: dict[str, Any]) -> PromptContext:
    current_file = args.get("currentFilePath")
    context_type = args["contextType"]
    project_root = args.get("projectRoot")
    ctx = PromptContext()
    # dict keys keep first-seen order without duplicates
    endpoints: dict[str, None] = {}

    if current_file:
        log.info("Context provided: %s (type: %s)", current_file, context_type)
        chunks = []
        for path in related_files(current_file, context_type):
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                log.warning("Could not read file %s: %s", path, exc)
                continue
            shown = path
            if project_root:
                try:
                    shown = path.resolve().relative_to(Path(project_root).resolve())
                except ValueError:
                    pass
            chunks.append(f"\n/* File: {shown} */\n{content}\n\n")
        if chunks:
            ctx.context_data = "\n\nADDITIONAL CONTEXT (related files):\n" + "".join(chunks)

        if context_type == "endpoint":
            try:
                source = Path(current_file).read_text(encoding="utf-8", errors="replace")
                endpoints.update(dict.fromkeys(extract_endpoints(source)))
            except OSError as exc:
                log.warning("Could not extract endpoints from file: %s", exc)

    endpoints.update(dict.fromkeys(args.get("endpoints") or []))
    ctx.endpoints = list(endpoints)
    ctx.file_name = suggested_file_name(current_file, ctx.endpoints)
    return ctx


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def build_prompts(args: dict[str, Any], ctx: PromptContext) -> tuple[str, str]:
    framework = args["framework"]
    output_format = args["outputFormat"]
    focus_rule = (
        "" if ctx.focus_on_spec
        else "8. IMPORTANT: Focus only on endpoints/functionality from the currently viewed file and related context"
    )
    system_prompt = f"""You are an expert API test engineer. Generate comprehensive test suites for APIs based on specifications or code.

Your tests must follow these strict requirements:
1. Write tests in {output_format} using the {framework} framework
2. Include tests for edge cases, validations, error conditions, and success scenarios
3. Use proper mocking for external dependencies and database calls
4. Follow best practices for the specified test framework
5. Include appropriate assertions for each test case
6. Use descriptive test names that explain what's being tested
7. Group tests logically by endpoint, feature, or scenario
{focus_rule}

FORMAT REQUIREMENTS:
- Return valid, runnable code only
- Include all necessary imports at the top
- For JavaScript: Use modern JS syntax (ES6+) with proper semicolons
- For TypeScript: Include proper type definitions and interfaces
- Include setup/teardown functions where appropriate
- Add detailed comments explaining complex test logic
- Format code with proper indentation and spacing

IMPORTANT: DO NOT include any explanations outside the code blocks. Return ONLY valid {output_format} code that can be directly saved to a file and executed."""

    language = "in TypeScript" if output_format == "typescript" else "in JavaScript"
    lines = [
        f"Generate a comprehensive test suite for the following API {language} using the {framework} framework.",
        "",
        "API Specification or Code:",
        "```",
        args["spec"],
        "```",
    ]
    if ctx.endpoints:
        lines.append(f"Focus specifically on these endpoints: {', '.join(ctx.endpoints)}")
    if ctx.context_data:
        lines.append(ctx.context_data)
    current_file = args.get("currentFilePath")
    if current_file:
        lines.append(
            "Based on the context, this test should be focused on testing the functionality in: "
            f"{Path(current_file).name}"
        )
    lines.append(f"Suggested filename for this test: {ctx.file_name}.test.{_file_ext(output_format)}")
    lines.append("")
    lines.append("Return a complete, runnable test suite that I can save directly to a file. "
                 "Follow all format requirements strictly.")
    return system_prompt, "\n".join(lines)


def save_test_file(test_dir: str, file_name: str, output_format: str, code: str) -> Path | None:
    target = Path(test_dir) / f"{file_name}.test.{_file_ext(output_format)}"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(code, encoding="utf-8")
    except OSError as exc:
        log.error("Failed to save test file: %s", exc)
        return None
    log.info("Test file saved to: %s", target)
    return target


def make_handler(config: ServerConfig, client: LLMClient | None = None) -> ToolHandler:
    llm = client or LLMClient(config.llm_base_url, config.llm_api_key)

    async def run(args: dict[str, Any]) -> ToolResult:
        ctx = await asyncio.to_thread(gather_context, args)
        system_prompt, user_prompt = build_prompts(args, ctx)
        log.info("Calling model %s for %s", config.model_api_tests, NAME)
        try:
            reply = await llm.chat_once(
                config.model_api_tests,
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.5,
            )
        except LLMClientError as exc:
            log.error("LLM error: %s", exc)
            return ToolResult.text(f"Error generating API tests: {exc}")

        code = extract_code(reply or "No response from model.")
        output_format = args["outputFormat"]
        if args.get("testDir"):
            await asyncio.to_thread(save_test_file, args["testDir"], ctx.file_name, output_format, code)
        return ToolResult.text(
            f"# API Test Suite Generated ({args['framework']} - {output_format})\n"
            f"```{output_format}\n{code}\n```"
        )

    return run
