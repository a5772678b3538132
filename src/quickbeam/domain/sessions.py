"""Domain models for pairing sessions."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class SessionStatus(str, Enum):
    """Lifecycle status of a pairing session."""

    WAITING_FOR_SENDER = "waiting_for_sender"
    CONNECTED = "connected"
    SENDER_DISCONNECTED = "sender_disconnected"
    RECEIVER_DISCONNECTED = "receiver_disconnected"


class ClientRole(str, Enum):
    """Which side of the pairing a request comes from."""

    RECEIVER = "receiver"
    SENDER = "sender"

    @property
    def partner(self) -> "ClientRole":
        if self is ClientRole.RECEIVER:
            return ClientRole.SENDER
        return ClientRole.RECEIVER

    @property
    def disconnected_status(self) -> SessionStatus:
        """Status a session takes when this role goes silent."""
        if self is ClientRole.RECEIVER:
            return SessionStatus.RECEIVER_DISCONNECTED
        return SessionStatus.SENDER_DISCONNECTED


@dataclass
class ImageEntry:
    """An uploaded image held on disk until delivered or expired."""

    image_id: str
    path: Path
    filename: str
    media_type: str
    size: int
    claimed: bool = False


@dataclass
class Session:
    """In-memory state of one receiver/sender pairing."""

    id: str
    created_at: datetime
    expires_at: datetime
    receiver_last_seen: datetime
    sender_last_seen: datetime | None = None
    status: SessionStatus = SessionStatus.WAITING_FOR_SENDER
    images: dict[str, ImageEntry] = field(default_factory=dict)
    pending_image_ids: list[str] = field(default_factory=list)
    closed: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def last_seen(self, role: ClientRole) -> datetime | None:
        if role is ClientRole.RECEIVER:
            return self.receiver_last_seen
        return self.sender_last_seen

    def touch(self, role: ClientRole, now: datetime) -> None:
        """Record a heartbeat from the given role."""
        if role is ClientRole.RECEIVER:
            self.receiver_last_seen = now
        else:
            self.sender_last_seen = now

    def drain_pending(self) -> list[str]:
        """Hand over every queued image id exactly once."""
        drained = list(self.pending_image_ids)
        self.pending_image_ids.clear()
        return drained


@dataclass(frozen=True)
class SessionCreated:
    """Result of a receiver requesting a new session."""

    session_id: str
    expires_at: datetime
    timeout_ms: int
    polling_interval_ms: int


@dataclass(frozen=True)
class SenderConnected:
    """Result of a sender attaching to a session."""

    session_id: str
    timeout_ms: int
    polling_interval_ms: int


@dataclass(frozen=True)
class PollResult:
    """Status snapshot returned to a polling client."""

    status: SessionStatus
    partner_connected: bool
    remaining_ms: int
    new_image_ids: list[str]
    photo_count: int = 0


@dataclass(frozen=True)
class StoredImage:
    """Result of an accepted upload."""

    image_id: str
    filename: str
    size: int


@dataclass(frozen=True)
class DeliveredImage:
    """Image bytes handed to the receiver, pending post-delivery cleanup."""

    session_id: str
    image_id: str
    path: Path
    content: bytes = field(repr=False)
    media_type: str = "application/octet-stream"


@dataclass(frozen=True)
class SessionSummary:
    """Read-only view of a live session for diagnostics."""

    id: str
    status: SessionStatus
    created_at: datetime
    remaining_ms: int
    image_count: int
    pending_count: int
