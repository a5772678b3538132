"""Domain models for relay activity events."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class RelayAction(str, Enum):
    """Kinds of relay activity worth recording."""

    SESSION_CREATED = "SESSION_CREATED"
    SESSION_CONNECTED = "SESSION_CONNECTED"
    UPLOAD_IMAGE = "UPLOAD_IMAGE"
    DOWNLOAD_IMAGE = "DOWNLOAD_IMAGE"
    SESSION_CLEANUP = "SESSION_CLEANUP"


@dataclass(frozen=True)
class RelayEvent:
    """A single recorded relay event."""

    timestamp: datetime
    action: RelayAction
    session_id: str | None
    ip: str
    details: dict[str, object] | None = None
