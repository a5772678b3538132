"""Background eviction of expired sessions."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from quickbeam.services.sessions import SessionService

logger = logging.getLogger(__name__)


@dataclass
class ExpirySweeper:
    """Periodically discards sessions whose deadline has passed.

    This is the backstop for abandoned sessions: a receiver that closes its
    tab stops polling, and no request would otherwise reclaim its images.
    """

    sessions: SessionService
    interval_seconds: float
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    async def run_once(self) -> int:
        """Evict every expired session now and return how many were removed."""
        removed = await self.sessions.expire_due_sessions()
        if removed:
            logger.info(
                "Background cleanup removed expired sessions", extra={"count": removed}
            )
        return removed

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Expired session sweep failed")

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_forever(), name="session-sweeper")
        logger.info(
            "Session sweeper started", extra={"interval": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Session sweeper stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
