"""Server-side login sessions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import Lock

from camrelay.core.security import generate_session_token
from camrelay.core.settings import settings

ROLE_ADMIN = "admin"
ROLE_USER = "user"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Session:
    """Proof of a successful login, bound to one account."""

    token: str
    username: str
    role: str
    created_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStore:
    """In-memory session table with fixed-lifetime entries.

    Expired sessions are dropped when they are next looked up or by
    `purge_expired`.
    """

    def __init__(
        self,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.ttl = ttl or timedelta(seconds=settings.session_ttl_seconds)
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = Lock()

    def create(self, username: str, role: str) -> Session:
        now = self._clock()
        session = Session(
            token=generate_session_token(),
            username=username,
            role=role,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._sessions[session.token] = session
        return session

    def get(self, token: str) -> Session | None:
        """Return the live session for `token`, or None if unknown or expired."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(now):
                del self._sessions[token]
                return None
            return session

    def destroy(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired session and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
