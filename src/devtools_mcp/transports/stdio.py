"""
Stdio transport: one implicit session over the process's stdin/stdout.

Protocol framing is one JSON object per line.  Requests are handled one at a
time in arrival order, so responses come back in the same order.  Logs go to
stderr; stdout carries nothing but protocol lines.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable
from typing import Protocol

from ..dispatcher import Dispatcher
from ..protocol import INTERNAL_ERROR, ProtocolError, _err, encode, parse_message

log = logging.getLogger("devtools-mcp.stdio")

_READ_CHUNK = 64 * 1024


class ByteReader(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


def _write(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class StdioTransport:
    def __init__(
        self,
        dispatcher: Dispatcher,
        reader: ByteReader,
        write: Callable[[str], None] = _write,
    ) -> None:
        self.dispatcher = dispatcher
        self.reader = reader
        self.write = write
        self._buffer = bytearray()

    async def run(self) -> None:
        """Read until EOF, dispatching each complete line as it arrives."""
        while True:
            chunk = await self.reader.read(_READ_CHUNK)
            if not chunk:
                break
            for line in self._feed(chunk):
                await self._handle(line)
        if self._buffer.strip():
            log.warning("Discarding %d bytes of unterminated input at EOF", len(self._buffer))
        self._buffer.clear()

    def _feed(self, chunk: bytes) -> list[bytes]:
        self._buffer.extend(chunk)
        *complete, rest = self._buffer.split(b"\n")
        self._buffer = bytearray(rest)
        return [line for line in complete if line.strip()]

    async def _handle(self, line: bytes) -> None:
        try:
            message = parse_message(line)
        except ProtocolError as exc:
            log.warning("Rejected stdio message: %s", exc.message)
            self.write(encode(exc.to_envelope()))
            return
        try:
            response = await self.dispatcher.handle(message)
            if response is None:
                return
            line_out = encode(response)
        except Exception as exc:
            log.error("Dispatch crashed for id=%r: %s", message.get("id"), exc, exc_info=True)
            line_out = encode(_err(message.get("id"), INTERNAL_ERROR, "Internal error",
                                   {"detail": str(exc) or type(exc).__name__}))
        self.write(line_out)


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def run_stdio(dispatcher: Dispatcher) -> None:
    reader = await _stdin_reader()
    log.info("Serving %d tools over stdio", len(dispatcher.registry))
    await StdioTransport(dispatcher, reader).run()
