from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

log = logging.getLogger("devtools-mcp.llm")


class LLMClientError(RuntimeError):
    """A chat completion request failed; ``retryable`` marks transient failures."""

    RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable

    @classmethod
    def from_response(cls, path: str, response: httpx.Response) -> "LLMClientError":
        status = response.status_code
        return cls(
            f"HTTP {status} on {path}: {response.text[:300]}",
            status_code=status,
            retryable=status in cls.RETRYABLE_STATUSES,
        )


# Connection-level failures; retried once, like 429/5xx responses.
_RETRIABLE = (
    httpx.RemoteProtocolError,
    httpx.ReadError,
    httpx.ConnectError,
    httpx.LocalProtocolError,
)


class LLMClient:
    """Minimal client for an OpenAI-compatible ``/v1/chat/completions`` API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retry_delay = retry_delay
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self._headers(), transport=self._transport
            ) as client:
                response = await client.request(method, f"{self.base_url}{path}", **kwargs)
                response.raise_for_status()
                return response
        except httpx.TimeoutException as exc:
            # Timeouts are not retried.
            raise LLMClientError(f"Request timed out: {path}") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMClientError.from_response(path, exc.response) from exc
        except _RETRIABLE as exc:
            raise LLMClientError(f"Network error on {path}: {exc}", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise LLMClientError(f"Network error on {path}: {exc}") from exc

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._send(method, path, **kwargs)
        except LLMClientError as exc:
            if not exc.retryable:
                raise
            log.warning("Retrying %s %s after: %s", method, path, exc)
        await asyncio.sleep(self.retry_delay)
        return await self._send(method, path, **kwargs)

    async def chat_once(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
    ) -> str:
        """Return the assistant text for one non-streaming completion."""
        payload: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        response = await self._request("POST", "/v1/chat/completions", json=payload)
        try:
            message = response.json()["choices"][0]["message"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMClientError("Malformed chat response") from exc
        return message.get("content") or ""
