"""Session table for the SSE transport.

Shared by every HTTP connection in the process.  All access goes through one
``asyncio.Lock``, so open, close and lookup are each a single atomic step.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

log = logging.getLogger("devtools-mcp.sessions")


@dataclass
class Session:
    id: str
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    created_at: float = field(default_factory=time.time)

    async def send(self, envelope: dict) -> None:
        await self.queue.put(envelope)


class SessionTable:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def open(self) -> Session:
        async with self._lock:
            session_id = uuid.uuid4().hex
            while session_id in self._sessions:
                session_id = uuid.uuid4().hex
            session = Session(id=session_id)
            self._sessions[session_id] = session
        log.info("Session %s opened (%d active)", session_id, len(self._sessions))
        return session

    async def close(self, session_id: str) -> bool:
        async with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            log.info("Session %s closed (%d active)", session_id, len(self._sessions))
        return removed

    async def get(self, session_id: str) -> Session | None:
        async with self._lock:
            return self._sessions.get(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
