"""Session manager: keyed table of live sessions (session id -> identity snapshot)."""

import logging
import secrets
import threading
from collections.abc import Iterable
from datetime import UTC, datetime

from app.schemas.auth import Session, User

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Unguessable id for a client context."""
    return secrets.token_urlsafe(32)


class SessionManager:
    """
    Per session id, two states: Anonymous (no entry) and Authenticated (one User snapshot).

    Each id also carries a generation counter bumped by clear(). A login reads the generation
    before it suspends and passes it to establish(); if a logout for the same id completed in
    between, establish() refuses so the session stays Anonymous.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()
        self._restored = False

    def generation(self, session_id: str) -> int:
        with self._lock:
            return self._generations.get(session_id, 0)

    def establish(
        self,
        session_id: str,
        user: User,
        expected_generation: int | None = None,
    ) -> Session | None:
        """Install user for session_id, replacing any prior session. None if revoked meanwhile."""
        with self._lock:
            if (
                expected_generation is not None
                and self._generations.get(session_id, 0) != expected_generation
            ):
                return None
            session = Session(
                session_id=session_id,
                identity=user,
                established_at=datetime.now(UTC),
            )
            self._sessions[session_id] = session
            return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def current(self, session_id: str) -> User | None:
        session = self.get(session_id)
        return None if session is None else session.identity

    def clear(self, session_id: str) -> bool:
        """Return to Anonymous. Idempotent; returns whether a session was removed."""
        with self._lock:
            self._generations[session_id] = self._generations.get(session_id, 0) + 1
            return self._sessions.pop(session_id, None) is not None

    def restore(self, sessions: Iterable[Session]) -> int:
        """Startup hook: reinstall persisted snapshots. Only the first call has any effect."""
        with self._lock:
            if self._restored:
                logger.warning("Session restore already ran; ignoring repeated call.")
                return 0
            self._restored = True
            count = 0
            for session in sessions:
                self._sessions[session.session_id] = session
                count += 1
            return count

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)
