"""Session lifecycle state machine for receiver/sender pairing.

Both clients poll the same session. Each poll is a heartbeat for the polling
side and the moment it checks the other side's liveness, so a silent partner
is noticed within one poll interval plus the liveness threshold. The absolute
session deadline is independent of liveness and always wins: an operation on
a session past its deadline discards it and reports it as not found.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from quickbeam.domain.errors import SenderConflictError, SessionNotFoundError
from quickbeam.domain.events import RelayAction
from quickbeam.domain.sessions import (
    ClientRole,
    PollResult,
    SenderConnected,
    Session,
    SessionCreated,
    SessionStatus,
    SessionSummary,
)
from quickbeam.domain.timeouts import (
    compute_expires_at,
    is_expired,
    is_stale,
    remaining_ms,
)
from quickbeam.services.clock import Clock
from quickbeam.services.events import EventService
from quickbeam.services.storage import ImageStorage, delete_image_file

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Session not found or expired."


class SessionRepository(Protocol):
    """Storage interface for live sessions."""

    def create_session(self, now: datetime, expires_at: datetime) -> Session:
        """Create a session waiting for its sender and return it."""

    def get_session(self, session_id: str) -> Session | None:
        """Return a session by id, if present."""

    def delete_session(self, session_id: str) -> None:
        """Remove a session record."""

    def list_sessions(self) -> list[Session]:
        """Return a snapshot of all session records."""


@dataclass
class SessionService:
    """State machine driven by connect, poll, upload and fetch events."""

    repository: SessionRepository
    storage: ImageStorage
    clock: Clock
    events: EventService
    session_timeout: timedelta
    client_timeout: timedelta
    polling_interval_ms: int

    @property
    def session_timeout_ms(self) -> int:
        return int(self.session_timeout / timedelta(milliseconds=1))

    def create_session(self, ip: str | None = None) -> SessionCreated:
        """Open a session on behalf of a receiver."""
        now = self.clock.now()
        session = self.repository.create_session(
            now=now, expires_at=compute_expires_at(now, self.session_timeout)
        )
        self.events.record(RelayAction.SESSION_CREATED, session.id, ip)
        logger.info("Session created", extra={"session_id": session.id, "ip": ip})
        return SessionCreated(
            session_id=session.id,
            expires_at=session.expires_at,
            timeout_ms=self.session_timeout_ms,
            polling_interval_ms=self.polling_interval_ms,
        )

    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[Session]:
        """Hold a live session's lock; expired sessions are discarded first."""
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(SESSION_NOT_FOUND)
        async with session.lock:
            if session.closed:
                raise SessionNotFoundError(SESSION_NOT_FOUND)
            if is_expired(session.expires_at, self.clock.now()):
                await self.discard_locked(session, "Expired on access")
                raise SessionNotFoundError(SESSION_NOT_FOUND)
            yield session

    async def connect_sender(
        self, session_id: str, ip: str | None = None
    ) -> SenderConnected:
        """Attach the sender; a session supports exactly one live sender."""
        async with self.locked(session_id) as session:
            now = self.clock.now()
            has_live_sender = session.status in {
                SessionStatus.CONNECTED,
                SessionStatus.RECEIVER_DISCONNECTED,
            } and not is_stale(session.sender_last_seen, now, self.client_timeout)
            if has_live_sender:
                logger.warning(
                    "Sender connect rejected: active sender present",
                    extra={"session_id": session_id, "ip": ip},
                )
                raise SenderConflictError("Session already has an active sender.")
            previous = session.status
            # A receiver marked stale recovers only through its own poll.
            if previous is not SessionStatus.RECEIVER_DISCONNECTED:
                session.status = SessionStatus.CONNECTED
            session.touch(ClientRole.SENDER, now)
            session.expires_at = compute_expires_at(now, self.session_timeout)
        self.events.record(RelayAction.SESSION_CONNECTED, session_id, ip)
        logger.info(
            "Sender connected",
            extra={"session_id": session_id, "previous_status": previous.value},
        )
        return SenderConnected(
            session_id=session_id,
            timeout_ms=self.session_timeout_ms,
            polling_interval_ms=self.polling_interval_ms,
        )

    async def poll_status(self, session_id: str, role: ClientRole) -> PollResult:
        """Record a heartbeat and report the partner's presence.

        Receiver polls also hand over every image queued since the previous
        poll; each id is returned exactly once.
        """
        async with self.locked(session_id) as session:
            now = self.clock.now()
            session.touch(role, now)
            if session.status is role.disconnected_status:
                session.status = SessionStatus.CONNECTED
                logger.info(
                    "Client resumed polling",
                    extra={"session_id": session_id, "role": role.value},
                )
            partner = role.partner
            if session.status is SessionStatus.CONNECTED and is_stale(
                session.last_seen(partner), now, self.client_timeout
            ):
                session.status = partner.disconnected_status
                logger.warning(
                    "Partner timed out",
                    extra={"session_id": session_id, "observer": role.value},
                )
            new_image_ids: list[str] = []
            if role is ClientRole.RECEIVER and session.pending_image_ids:
                new_image_ids = session.drain_pending()
                logger.info(
                    "Delivering pending image ids",
                    extra={"session_id": session_id, "count": len(new_image_ids)},
                )
            return PollResult(
                status=session.status,
                partner_connected=session.status is SessionStatus.CONNECTED,
                remaining_ms=remaining_ms(session.expires_at, now),
                new_image_ids=new_image_ids,
                photo_count=self.events.photo_count(),
            )

    async def discard_session(self, session_id: str, reason: str) -> bool:
        """Destroy a session and its files; returns False if already gone."""
        session = self.repository.get_session(session_id)
        if session is None:
            return False
        async with session.lock:
            if session.closed:
                return False
            await self.discard_locked(session, reason)
        return True

    async def discard_locked(self, session: Session, reason: str) -> None:
        """Delete every image file, then the record. Caller holds the lock."""
        session.closed = True
        logger.warning(
            "Session cleanup initiated",
            extra={"session_id": session.id, "reason": reason},
        )
        entries = list(session.images.values())
        for entry in entries:
            await delete_image_file(self.storage, entry.path, session.id)
        session.images.clear()
        session.pending_image_ids.clear()
        try:
            await self.storage.release_session(session.id)
        except OSError:
            logger.exception(
                "Failed to release session storage", extra={"session_id": session.id}
            )
        self.repository.delete_session(session.id)
        self.events.record(
            RelayAction.SESSION_CLEANUP,
            session.id,
            details={"reason": reason, "images": len(entries)},
        )

    async def expire_due_sessions(self) -> int:
        """Discard every session whose deadline has passed."""
        expired = 0
        for session in self.repository.list_sessions():
            if not is_expired(session.expires_at, self.clock.now()):
                continue
            async with session.lock:
                if session.closed or not is_expired(
                    session.expires_at, self.clock.now()
                ):
                    continue
                await self.discard_locked(session, "Expired via background cleanup")
            expired += 1
        return expired

    def summaries(self) -> list[SessionSummary]:
        """Describe live sessions, oldest first."""
        now = self.clock.now()
        sessions = sorted(self.repository.list_sessions(), key=lambda s: s.created_at)
        return [
            SessionSummary(
                id=session.id,
                status=session.status,
                created_at=session.created_at,
                remaining_ms=remaining_ms(session.expires_at, now),
                image_count=len(session.images),
                pending_count=len(session.pending_image_ids),
            )
            for session in sessions
            if not session.closed
        ]
