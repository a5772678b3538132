"""Ephemeral image relay from sender to receiver."""

import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from uuid import uuid4

from quickbeam.domain.errors import (
    InvalidSessionStateError,
    PayloadTooLargeError,
    SessionNotFoundError,
    StorageFailureError,
)
from quickbeam.domain.events import RelayAction
from quickbeam.domain.sessions import (
    DeliveredImage,
    ImageEntry,
    Session,
    SessionStatus,
    StoredImage,
)
from quickbeam.domain.timeouts import compute_expires_at, is_stale
from quickbeam.services.sessions import SESSION_NOT_FOUND, SessionService
from quickbeam.services.storage import ImageStorage, delete_image_file

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "uploaded-image"
IMAGE_NOT_FOUND = "Image not found or session invalid."
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_FILENAME_LENGTH = 100


@dataclass
class ImageRelayService:
    """Binds uploads to a session and serves each one exactly once."""

    sessions: SessionService
    storage: ImageStorage
    max_upload_bytes: int

    async def upload_image(
        self,
        session_id: str,
        data: bytes,
        filename: str | None,
        ip: str | None = None,
    ) -> StoredImage:
        """Store an upload and queue it for the receiver's next poll."""
        display_name = sanitize_filename(filename)
        image_id = f"{uuid4().hex}-{display_name}"
        async with self.sessions.locked(session_id) as session:
            await self._ensure_can_upload(session)
            if len(data) > self.max_upload_bytes:
                logger.warning(
                    "Upload rejected: payload too large",
                    extra={"session_id": session_id, "size": len(data)},
                )
                raise PayloadTooLargeError(len(data), self.max_upload_bytes)

        try:
            path = await self.storage.write(session_id, image_id, data)
        except OSError as exc:
            logger.exception(
                "Image upload write failed",
                extra={"session_id": session_id, "image_id": image_id},
            )
            raise StorageFailureError("Failed to process upload.") from exc

        async with session.lock:
            if session.closed:
                await delete_image_file(self.storage, path, session_id)
                await self.storage.release_session(session_id)
                raise SessionNotFoundError(SESSION_NOT_FOUND)
            session.images[image_id] = ImageEntry(
                image_id=image_id,
                path=path,
                filename=display_name,
                media_type=guess_media_type(display_name),
                size=len(data),
            )
            session.pending_image_ids.append(image_id)
            session.expires_at = compute_expires_at(
                self.sessions.clock.now(), self.sessions.session_timeout
            )
            pending = len(session.pending_image_ids)

        self.sessions.events.record(
            RelayAction.UPLOAD_IMAGE,
            session_id,
            ip,
            details={"imageId": image_id, "fileSize": len(data)},
        )
        logger.info(
            "Image queued for receiver",
            extra={"session_id": session_id, "image_id": image_id, "pending": pending},
        )
        return StoredImage(image_id=image_id, filename=display_name, size=len(data))

    async def _ensure_can_upload(self, session: Session) -> None:
        if session.status is SessionStatus.WAITING_FOR_SENDER:
            raise InvalidSessionStateError("Sender has not connected yet.")
        if session.status is SessionStatus.SENDER_DISCONNECTED:
            raise InvalidSessionStateError(
                "Session is not active; sender must reconnect."
            )
        receiver_gone = session.status is SessionStatus.RECEIVER_DISCONNECTED
        if not receiver_gone:
            receiver_gone = is_stale(
                session.receiver_last_seen,
                self.sessions.clock.now(),
                self.sessions.client_timeout,
            )
        if receiver_gone:
            logger.warning(
                "Upload rejected: receiver disconnected",
                extra={"session_id": session.id},
            )
            await self.sessions.discard_locked(
                session, "Receiver timed out before upload could complete"
            )
            raise InvalidSessionStateError("Receiver partner disconnected.")

    async def fetch_image(
        self, session_id: str, image_id: str, ip: str | None = None
    ) -> DeliveredImage:
        """Return an image's bytes; a second fetch of the same id is not found.

        The entry is claimed under the session lock and read outside it. The
        caller schedules ``release_image`` once the bytes have been sent.
        """
        async with self.sessions.locked(session_id) as session:
            entry = session.images.get(image_id)
            if entry is None or entry.claimed:
                logger.warning(
                    "Image fetch failed: unknown image id",
                    extra={"session_id": session_id, "image_id": image_id},
                )
                raise SessionNotFoundError(IMAGE_NOT_FOUND)
            entry.claimed = True

        try:
            content = await self.storage.read(entry.path)
        except FileNotFoundError as exc:
            async with session.lock:
                session.images.pop(image_id, None)
                if image_id in session.pending_image_ids:
                    session.pending_image_ids.remove(image_id)
            logger.warning(
                "Image fetch failed: file already gone",
                extra={"session_id": session_id, "image_id": image_id},
            )
            raise SessionNotFoundError(IMAGE_NOT_FOUND) from exc
        except OSError as exc:
            async with session.lock:
                entry.claimed = False
            logger.exception(
                "Image fetch failed: read error",
                extra={"session_id": session_id, "image_id": image_id},
            )
            raise StorageFailureError("Failed to retrieve image.") from exc

        self.sessions.events.record(
            RelayAction.DOWNLOAD_IMAGE,
            session_id,
            ip,
            details={"imageId": image_id, "fileSize": len(content)},
        )
        return DeliveredImage(
            session_id=session_id,
            image_id=image_id,
            path=entry.path,
            content=content,
            media_type=entry.media_type,
        )

    async def release_image(self, delivered: DeliveredImage) -> None:
        """Post-delivery cleanup; tolerates a file or session already gone."""
        await delete_image_file(self.storage, delivered.path, delivered.session_id)
        session = self.sessions.repository.get_session(delivered.session_id)
        if session is None:
            logger.warning(
                "Session gone before post-send cleanup",
                extra={
                    "session_id": delivered.session_id,
                    "image_id": delivered.image_id,
                },
            )
            return
        async with session.lock:
            session.images.pop(delivered.image_id, None)
            if delivered.image_id in session.pending_image_ids:
                session.pending_image_ids.remove(delivered.image_id)
            remaining = len(session.images)
        logger.info(
            "Image delivered and removed",
            extra={
                "session_id": delivered.session_id,
                "image_id": delivered.image_id,
                "remaining": remaining,
            },
        )


def sanitize_filename(filename: str | None) -> str:
    """Reduce a client-supplied name to a safe basename for display."""
    if not filename:
        return DEFAULT_FILENAME
    basename = PurePosixPath(filename.replace("\\", "/")).name
    cleaned = _UNSAFE_CHARS.sub("_", basename).lstrip(".")
    if not cleaned:
        return DEFAULT_FILENAME
    return cleaned[-_MAX_FILENAME_LENGTH:]


def guess_media_type(filename: str) -> str:
    media_type, _ = mimetypes.guess_type(filename)
    return media_type or "application/octet-stream"
