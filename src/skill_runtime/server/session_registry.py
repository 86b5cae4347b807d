"""Live sessions for the REST server.

Sessions are single-caller objects; the registry hands each one out under its
own lock and persists a snapshot when the caller is done with it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from skill_runtime.orchestrator.engine.session import Session
from skill_runtime.orchestrator.runtime import RuntimeContext
from skill_runtime.orchestrator.state.store import validate_session_id

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(self, runtime: RuntimeContext) -> None:
        self._runtime = runtime
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._session_locks: dict[str, threading.Lock] = {}

    def create(self, session_id: str | None = None) -> Session:
        with self._lock:
            if session_id is not None:
                validate_session_id(session_id)
                if session_id in self._sessions or self._runtime.store.exists(session_id):
                    raise ValueError(f"Session already exists: {session_id}")
            session = self._runtime.new_session(session_id)
            self._sessions[session.session_id] = session
            self._session_locks[session.session_id] = threading.Lock()
        self._runtime.save_session(session)
        logger.info("Session created", extra={"session_id": session.session_id})
        return session

    def _lookup(self, session_id: str) -> tuple[Session, threading.Lock]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = self._runtime.load_session(session_id)
                self._sessions[session_id] = session
                self._session_locks[session_id] = threading.Lock()
                logger.info("Session restored", extra={"session_id": session_id})
            return session, self._session_locks[session_id]

    @contextmanager
    def use(self, session_id: str) -> Iterator[Session]:
        """Exclusive access to a session; the snapshot is saved on exit.

        Saving happens even when the caller's operation raised: a failed tool
        call is still recorded in the history.
        """

        session, lock = self._lookup(session_id)
        with lock:
            try:
                yield session
            finally:
                self._runtime.save_session(session)

    def delete(self, session_id: str) -> None:
        """Evict a session and remove its snapshot. Raises SessionNotFound."""

        _session, lock = self._lookup(session_id)
        with lock:
            with self._lock:
                self._sessions.pop(session_id, None)
                self._session_locks.pop(session_id, None)
            self._runtime.store.delete(session_id)
        logger.info("Session deleted", extra={"session_id": session_id})
