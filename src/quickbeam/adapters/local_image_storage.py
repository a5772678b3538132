"""Filesystem-backed image storage."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from quickbeam.services.storage import ImageStorage

logger = logging.getLogger(__name__)


@dataclass
class LocalImageStorage(ImageStorage):
    """Stores each session's images under ``root/<session_id>/``."""

    root: Path

    def ensure_root(self) -> None:
        """Create the upload directory if it does not exist."""
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("Upload directory ensured", extra={"root": str(self.root)})

    def session_dir(self, session_id: str) -> Path:
        return self.root / session_id

    async def write(self, session_id: str, image_id: str, data: bytes) -> Path:
        """Write bytes to a new file; never overwrites an existing one."""
        path = self.session_dir(session_id) / image_id
        await asyncio.to_thread(_write_new_file, path, data)
        return path

    async def read(self, path: Path) -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, path: Path) -> bool:
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        return True

    async def release_session(self, session_id: str) -> None:
        """Remove the empty session directory, tolerating its absence."""
        directory = self.session_dir(session_id)
        try:
            await asyncio.to_thread(directory.rmdir)
        except FileNotFoundError:
            return
        except OSError:
            logger.warning(
                "Session directory not removed",
                extra={"session_id": session_id, "path": str(directory)},
            )


def _write_new_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("xb") as handle:
        handle.write(data)
