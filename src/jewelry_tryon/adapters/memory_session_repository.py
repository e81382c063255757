"""In-process session store with expiry."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jewelry_tryon.domain.sessions import TryOnSession
from jewelry_tryon.services.sessions import SessionRepository


@dataclass
class _SessionEntry:
    session: TryOnSession
    expires_at: datetime


@dataclass
class InMemorySessionRepository(SessionRepository):
    """Session store keyed by cookie id; entries expire after a TTL.

    Expired entries are dropped on read and swept on every write, so
    abandoned sessions do not accumulate.
    """

    ttl_seconds: int
    _entries: dict[str, _SessionEntry]

    def __init__(self, ttl_seconds: int = 86400) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get_session(self, session_id: str) -> TryOnSession | None:
        """Return a session if it hasn't expired."""
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if datetime.now(tz=UTC) >= entry.expires_at:
            self._entries.pop(session_id, None)
            return None
        return entry.session

    def save_session(self, session_id: str, session: TryOnSession) -> None:
        """Store a session and refresh its expiry."""
        now = datetime.now(tz=UTC)
        self._sweep(now)
        self._entries[session_id] = _SessionEntry(
            session=session, expires_at=now + timedelta(seconds=self.ttl_seconds)
        )

    def _sweep(self, now: datetime) -> None:
        expired = [
            key for key, entry in self._entries.items() if now >= entry.expires_at
        ]
        for key in expired:
            del self._entries[key]
