from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable

from .config import ArcadeSettings
from .engine import ArcadeSession
from .models import RoundSummaryModel, SessionStateModel
from .rules import InvalidInputError, RoundResolutionError

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    pass


class SessionManager:
    def __init__(self, settings: ArcadeSettings | None = None) -> None:
        self._settings = settings or ArcadeSettings.from_env()
        self._sessions: dict[str, ArcadeSession] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def aclose(self) -> None:
        async with self._lock:
            for session in self._sessions.values():
                session.close()
            self._sessions.clear()
            self._session_locks.clear()

    async def create_session(self) -> SessionStateModel:
        async with self._lock:
            session_id = uuid.uuid4().hex[:12]
            session = ArcadeSession(session_id=session_id, settings=self._settings)
            self._sessions[session_id] = session
            self._session_locks[session_id] = asyncio.Lock()
        logger.info("Created arcade session %s", session_id)
        return session.get_state()

    async def close_session(self, session_id: str) -> None:
        async with self._lock:
            session = self._get_session(session_id)
            session.close()
            del self._sessions[session_id]
            self._session_locks.pop(session_id, None)
        logger.info("Closed arcade session %s", session_id)

    async def get_state(self, session_id: str) -> SessionStateModel:
        session, lock = await self._get_session_entry(session_id)
        async with lock:
            return session.get_state()

    async def list_rounds(self, session_id: str) -> list[RoundSummaryModel]:
        session, lock = await self._get_session_entry(session_id)
        async with lock:
            return session.list_rounds()

    async def select_game(self, session_id: str, game_id: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.select_game(game_id))

    async def back(self, session_id: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.back())

    async def set_opponent_mode(self, session_id: str, mode: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.set_opponent_mode(mode))

    async def set_wager(self, session_id: str, amount: str, token: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.set_wager(amount, token))

    async def start(self, session_id: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.start())

    async def submit(self, session_id: str, choice: Any) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.submit(choice))

    async def rematch(self, session_id: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.rematch())

    async def new_game(self, session_id: str) -> SessionStateModel:
        return await self._apply(session_id, lambda session: session.new_game())

    async def subscribe(self, session_id: str) -> tuple[asyncio.Queue[SessionStateModel], Callable[[], None]]:
        session, lock = await self._get_session_entry(session_id)
        queue: asyncio.Queue[SessionStateModel] = asyncio.Queue()
        async with lock:
            unsubscribe = session.subscribe(queue.put_nowait)
        return queue, unsubscribe

    async def _apply(
        self, session_id: str, intent: Callable[[ArcadeSession], SessionStateModel]
    ) -> SessionStateModel:
        session, lock = await self._get_session_entry(session_id)
        async with lock:
            return intent(session)

    async def _get_session_entry(self, session_id: str) -> tuple[ArcadeSession, asyncio.Lock]:
        async with self._lock:
            session = self._get_session(session_id)
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._session_locks[session_id] = lock
            return session, lock

    def _get_session(self, session_id: str) -> ArcadeSession:
        session = self._sessions.get(session_id)
        if not session:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session


__all__ = [
    "InvalidInputError",
    "RoundResolutionError",
    "SessionManager",
    "SessionNotFoundError",
]
