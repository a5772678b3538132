"""In-memory relay event repository."""

from collections import deque
from dataclasses import dataclass, field

from quickbeam.domain.events import RelayEvent
from quickbeam.services.events import EventRepository


@dataclass
class InMemoryEventRepository(EventRepository):
    """Bounded in-memory event log; the oldest events are dropped first."""

    max_events: int = 1_000
    _events: deque[RelayEvent] = field(init=False)
    _photo_count: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self._events = deque(maxlen=self.max_events)

    def append(self, event: RelayEvent) -> None:
        self._events.append(event)

    def list_events(self, offset: int, limit: int) -> list[RelayEvent]:
        newest_first = list(reversed(self._events))
        return newest_first[offset : offset + limit]

    def count(self) -> int:
        return len(self._events)

    def increment_photo_count(self) -> int:
        self._photo_count += 1
        return self._photo_count

    def photo_count(self) -> int:
        return self._photo_count
