"""
HTTP/SSE transport: many concurrent clients, one session each.

  GET  /mcp                         opens a session; first event is 'endpoint'
                                    pointing to /mcp/message?sessionId=<id>,
                                    then JSON-RPC responses arrive as
                                    'message' events
  POST /mcp/message?sessionId=<id>  submit one JSON-RPC request; answered
                                    202 at once, the response is pushed on
                                    the session's event stream later
  GET  /health                      health probe

Both /mcp routes require the credential header (``x-api-key`` by default).
Whether its value is acceptable is decided by an optional ``verify_credential``
callable; without one, any non-empty value passes.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Union

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from ..config import ServerConfig
from ..dispatcher import Dispatcher
from ..protocol import INTERNAL_ERROR, ProtocolError, _err, encode, parse_message
from ..sessions import Session, SessionTable

log = logging.getLogger("devtools-mcp.sse")

CredentialVerifier = Callable[[str], Union[bool, Awaitable[bool]]]

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


class SseTransport:
    """Session bookkeeping and delivery, independent of the HTTP framework."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        sessions: SessionTable | None = None,
        *,
        message_path: str = "/mcp/message",
        keepalive_interval: float = 15.0,
    ) -> None:
        self.dispatcher = dispatcher
        self.sessions = sessions or SessionTable()
        self.message_path = message_path
        self.keepalive_interval = keepalive_interval
        self._inflight: set[asyncio.Task] = set()

    def endpoint_url(self, session: Session) -> str:
        return f"{self.message_path}?sessionId={session.id}"

    async def event_stream(
        self,
        session: Session,
        is_disconnected: Callable[[], Awaitable[bool]],
    ) -> AsyncIterator[str]:
        """Yield SSE frames for *session*; the session is closed when this ends."""
        try:
            yield f"event: endpoint\ndata: {self.endpoint_url(session)}\n\n"
            while True:
                if await is_disconnected():
                    break
                try:
                    msg = await asyncio.wait_for(session.queue.get(), timeout=self.keepalive_interval)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: message\ndata: {encode(msg)}\n\n"
        finally:
            await self.sessions.close(session.id)

    def submit(self, session_id: str, message: dict[str, Any]) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(session_id, message))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _deliver(self, session_id: str, message: dict[str, Any]) -> None:
        try:
            response = await self.dispatcher.handle(message)
        except Exception as exc:
            log.error("Dispatch crashed for session %s: %s", session_id, exc, exc_info=True)
            response = _err(message.get("id"), INTERNAL_ERROR, "Internal error", {"detail": str(exc)})
        if response is None:
            return
        session = await self.sessions.get(session_id)
        if session is None:
            log.warning("Session %s is gone; dropping response to id=%r", session_id, response.get("id"))
            return
        await session.send(response)

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)


def create_app(
    dispatcher: Dispatcher,
    config: ServerConfig | None = None,
    *,
    verify_credential: CredentialVerifier | None = None,
) -> FastAPI:
    config = config or ServerConfig()
    transport = SseTransport(dispatcher, keepalive_interval=config.keepalive_interval)
    header = config.credential_header

    app = FastAPI(title="devtools-mcp")
    app.state.transport = transport

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> Response:
        log.error("Unhandled error [%s %s]: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    async def _reject_credential(request: Request) -> Response | None:
        value = request.headers.get(header, "").strip()
        if not value:
            return JSONResponse(status_code=401, content={"error": "API key required"})
        if verify_credential is not None:
            accepted = verify_credential(value)
            if inspect.isawaitable(accepted):
                accepted = await accepted
            if not accepted:
                return JSONResponse(status_code=401, content={"error": "Invalid API key"})
        return None

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "sessions": len(transport.sessions), "tools": len(dispatcher.registry)}

    @app.get("/mcp")
    async def open_stream(request: Request) -> Response:
        rejected = await _reject_credential(request)
        if rejected is not None:
            return rejected
        session = await transport.sessions.open()
        return StreamingResponse(
            transport.event_stream(session, request.is_disconnected),
            media_type="text/event-stream",
            headers=_SSE_HEADERS,
        )

    @app.post(transport.message_path)
    async def post_message(request: Request, sessionId: str = "") -> Response:
        rejected = await _reject_credential(request)
        if rejected is not None:
            return rejected
        if not sessionId:
            return Response(content="Missing sessionId", status_code=400)
        if await transport.sessions.get(sessionId) is None:
            return Response(content="Session not found", status_code=404)

        body = await request.body()
        try:
            message = parse_message(body)
        except ProtocolError as exc:
            return Response(
                content=json.dumps(exc.to_envelope()),
                media_type="application/json",
                status_code=400,
            )
        transport.submit(sessionId, message)
        return Response(content="Accepted", status_code=202)

    return app
