"""In-memory session repository."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from quickbeam.domain.sessions import Session
from quickbeam.services.sessions import SessionRepository


@dataclass
class InMemorySessionRepository(SessionRepository):
    """Process-wide session map; nothing survives a restart."""

    _sessions: dict[str, Session] = field(default_factory=dict)

    def create_session(self, now: datetime, expires_at: datetime) -> Session:
        """Allocate a session awaiting its sender under a fresh random id."""
        session_id = uuid4().hex
        while session_id in self._sessions:
            session_id = uuid4().hex
        session = Session(
            id=session_id,
            created_at=now,
            expires_at=expires_at,
            receiver_last_seen=now,
        )
        self._sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def list_sessions(self) -> list[Session]:
        return list(self._sessions.values())
