"""Image storage interface."""

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class ImageStorage(Protocol):
    """Backing store for uploaded image bytes, scoped per session."""

    async def write(self, session_id: str, image_id: str, data: bytes) -> Path:
        """Persist bytes and return their location."""

    async def read(self, path: Path) -> bytes:
        """Return stored bytes; raises FileNotFoundError when absent."""

    async def delete(self, path: Path) -> bool:
        """Delete stored bytes; returns False when they were already gone."""

    async def release_session(self, session_id: str) -> None:
        """Remove the session's storage area once it holds no files."""


async def delete_image_file(storage: ImageStorage, path: Path, session_id: str) -> None:
    """Delete one image file, logging instead of raising on any failure."""
    try:
        deleted = await storage.delete(path)
    except OSError:
        logger.exception(
            "Failed to delete image file",
            extra={"session_id": session_id, "path": str(path)},
        )
        return
    if not deleted:
        logger.warning(
            "Image file already deleted",
            extra={"session_id": session_id, "path": str(path)},
        )
