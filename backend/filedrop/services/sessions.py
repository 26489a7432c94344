"""In-memory admin sessions.

Sessions are opaque bearer tokens mapped to the admin they belong to. They
live until logout or process restart; there is no expiry and no eviction.
"""

import asyncio
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass

SESSION_COOKIE = "session_id"


@dataclass(frozen=True)
class Session:
    admin_id: str
    username: str


class ReadWriteLock:
    """Many concurrent readers or a single writer. Writers are not starved:
    once a writer is waiting, new readers queue behind it."""

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and not self._writers_waiting)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self):
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and not self._readers)
            finally:
                self._writers_waiting -= 1
                if not self._writers_waiting:
                    self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class SessionStore:
    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = ReadWriteLock()

    async def create(self, admin_id: str, username: str) -> str:
        session_id = secrets.token_urlsafe(32)
        async with self._lock.write():
            self._sessions[session_id] = Session(admin_id=admin_id, username=username)
        return session_id

    async def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        async with self._lock.read():
            return self._sessions.get(session_id)

    async def remove(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        async with self._lock.write():
            return self._sessions.pop(session_id, None) is not None

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._sessions)
