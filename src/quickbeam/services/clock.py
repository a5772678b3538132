"""Time source abstraction."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Interface for reading the current time."""

    def now(self) -> datetime:
        """Return the current UTC time."""


@dataclass
class SystemClock(Clock):
    """Wall-clock time source."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)
