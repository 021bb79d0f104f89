"""
Session Store
Key-value persistence of quiz sessions keyed by sessionId, with a time-to-live.

Two implementations share the SessionStore interface:
- InMemorySessionStore: single process only, lost on restart
- MongoSessionStore (app/crud/sessions.py): durable, TTL index on expiresAt

Expired sessions disappear silently; callers see them as not found.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from app.core.config import Settings
from app.core.errors import StoreError
from app.models.quiz_sessions import QuizSession


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """Interface every session store implements"""

    backend_name = "abstract"

    async def connect(self) -> None:
        """Open connections and prepare indexes (no-op by default)"""

    async def close(self) -> None:
        """Release connections (no-op by default)"""

    @abstractmethod
    async def create(self, session: QuizSession) -> QuizSession:
        """
        Store a new session

        Raises:
            StoreError: If a session with the same ID exists or the write fails
        """

    @abstractmethod
    async def get(self, session_id: str) -> Optional[QuizSession]:
        """Return the session, or None if missing or expired"""

    @abstractmethod
    async def update(self, session: QuizSession) -> QuizSession:
        """
        Replace a stored session

        The write only succeeds if the stored version equals session.version;
        the returned copy carries the incremented version.

        Raises:
            StoreError: If the session is missing or was changed concurrently
        """

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Delete a session, returning True if it existed"""

    @abstractmethod
    async def count(self) -> int:
        """Number of live sessions"""

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backing store is reachable"""


class InMemorySessionStore(SessionStore):
    """
    Dictionary-backed store for development and tests.

    Not safe across multiple server instances and does not survive a restart.
    Expiry is lazy: checked on access and purged on every create.
    """

    backend_name = "memory"

    def __init__(
        self,
        ttl_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[logging.Logger] = None
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._sessions: Dict[str, Tuple[QuizSession, datetime]] = {}

        self.logger.warning("⚠️ Using in-memory session storage - not suitable for production")

    def _expired(self, expires_at: datetime) -> bool:
        return self.clock() >= expires_at

    def _live(self, session_id: str) -> Optional[QuizSession]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None

        session, expires_at = entry
        if self._expired(expires_at):
            del self._sessions[session_id]
            self.logger.info(f"🗑️ Expired session reclaimed: {session_id}")
            return None

        return session

    async def create(self, session: QuizSession) -> QuizSession:
        self.purge_expired()

        if self._live(session.sessionId) is not None:
            raise StoreError(f"Session already exists: {session.sessionId}")

        stored = session.model_copy(deep=True)
        self._sessions[session.sessionId] = (stored, self.clock() + self.ttl)

        self.logger.info(f"✅ Created session in memory: {session.sessionId}")
        return stored.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[QuizSession]:
        session = self._live(session_id)
        if session is None:
            self.logger.warning(f"⚠️ Session not found in memory: {session_id}")
            return None

        return session.model_copy(deep=True)

    async def update(self, session: QuizSession) -> QuizSession:
        current = self._live(session.sessionId)
        if current is None:
            raise StoreError(f"Cannot update missing session: {session.sessionId}")

        if current.version != session.version:
            self.logger.error(
                f"❌ Write conflict on session {session.sessionId}: "
                f"stored version {current.version}, update based on {session.version}"
            )
            raise StoreError(f"Session {session.sessionId} was modified concurrently")

        stored = session.model_copy(update={"version": session.version + 1}, deep=True)
        _, expires_at = self._sessions[session.sessionId]
        self._sessions[session.sessionId] = (stored, expires_at)

        self.logger.debug(f"✓ Updated session {session.sessionId} to version {stored.version}")
        return stored.model_copy(deep=True)

    async def delete(self, session_id: str) -> bool:
        existed = self._live(session_id) is not None
        self._sessions.pop(session_id, None)
        if existed:
            self.logger.info(f"✅ Deleted session from memory: {session_id}")
        return existed

    async def count(self) -> int:
        self.purge_expired()
        return len(self._sessions)

    async def health_check(self) -> bool:
        return True

    def purge_expired(self) -> int:
        """Drop every expired session, returning how many were removed"""
        expired = [
            session_id
            for session_id, (_, expires_at) in self._sessions.items()
            if self._expired(expires_at)
        ]

        for session_id in expired:
            del self._sessions[session_id]

        if expired:
            self.logger.info(
                f"🧹 Session cleanup completed - removed {len(expired)}, "
                f"active {len(self._sessions)}"
            )

        return len(expired)


def create_session_store(
    settings: Settings,
    logger: Optional[logging.Logger] = None
) -> SessionStore:
    """
    Build the store named by settings.session_store

    Args:
        settings: Application settings
        logger: Optional logger passed to the store

    Returns:
        InMemorySessionStore or MongoSessionStore
    """
    if settings.session_store == "memory":
        return InMemorySessionStore(
            ttl_seconds=settings.memory_session_ttl_seconds,
            logger=logger
        )

    if settings.session_store == "mongodb":
        from app.crud.sessions import MongoSessionStore

        return MongoSessionStore.from_settings(settings, logger=logger)

    raise ValueError(f"Unknown session store: {settings.session_store}")
