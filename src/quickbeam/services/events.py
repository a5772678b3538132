"""Relay activity event log."""

import logging
from dataclasses import dataclass
from typing import Protocol

from quickbeam.domain.events import RelayAction, RelayEvent
from quickbeam.services.clock import Clock

logger = logging.getLogger(__name__)


class EventRepository(Protocol):
    """Persistence interface for relay events."""

    def append(self, event: RelayEvent) -> None:
        """Store an event."""

    def list_events(self, offset: int, limit: int) -> list[RelayEvent]:
        """Return events newest first."""

    def count(self) -> int:
        """Return the number of stored events."""

    def increment_photo_count(self) -> int:
        """Bump the uploaded photo counter and return the new value."""

    def photo_count(self) -> int:
        """Return the uploaded photo counter."""


@dataclass(frozen=True)
class EventPage:
    """A page of events for the admin API."""

    events: list[RelayEvent]
    page: int
    total_pages: int
    total: int


@dataclass
class EventService:
    """Service for recording relay events and the photo counter."""

    repository: EventRepository
    clock: Clock

    def record(
        self,
        action: RelayAction,
        session_id: str | None,
        ip: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Record an event; failures are logged and never propagate."""
        event = RelayEvent(
            timestamp=self.clock.now(),
            action=action,
            session_id=session_id,
            ip=ip or "unknown",
            details=details,
        )
        try:
            self.repository.append(event)
            if action is RelayAction.UPLOAD_IMAGE:
                self.repository.increment_photo_count()
        except Exception:
            logger.exception(
                "Failed to record relay event",
                extra={"action": action.value, "session_id": session_id},
            )

    def photo_count(self) -> int:
        return max(0, self.repository.photo_count())

    def page(self, page: int, limit: int) -> EventPage:
        """Return one page of events, newest first."""
        total = self.repository.count()
        total_pages = -(-total // limit) if total else 0
        events = self.repository.list_events(offset=(page - 1) * limit, limit=limit)
        return EventPage(events=events, page=page, total_pages=total_pages, total=total)
