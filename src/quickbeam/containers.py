"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from quickbeam.adapters.local_image_storage import LocalImageStorage
from quickbeam.adapters.memory_event_repository import InMemoryEventRepository
from quickbeam.adapters.memory_session_repository import InMemorySessionRepository
from quickbeam.config import Settings
from quickbeam.domain.timeouts import millis
from quickbeam.services.clock import Clock, SystemClock
from quickbeam.services.events import EventService
from quickbeam.services.relay import ImageRelayService
from quickbeam.services.sessions import SessionService
from quickbeam.services.sweeper import ExpirySweeper


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    event_service: EventService
    session_service: SessionService
    relay_service: ImageRelayService
    sweeper: ExpirySweeper
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None, clock: Clock | None = None
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    resolved_clock = clock or SystemClock()
    storage = LocalImageStorage(resolved_settings.upload_dir)
    storage.ensure_root()
    event_service = EventService(
        repository=InMemoryEventRepository(max_events=resolved_settings.event_log_size),
        clock=resolved_clock,
    )
    session_service = SessionService(
        repository=InMemorySessionRepository(),
        storage=storage,
        clock=resolved_clock,
        events=event_service,
        session_timeout=millis(resolved_settings.session_timeout_ms),
        client_timeout=millis(resolved_settings.client_timeout_ms),
        polling_interval_ms=resolved_settings.polling_interval_ms,
    )
    relay_service = ImageRelayService(
        sessions=session_service,
        storage=storage,
        max_upload_bytes=resolved_settings.max_upload_bytes,
    )
    sweeper = ExpirySweeper(
        sessions=session_service,
        interval_seconds=resolved_settings.cleanup_interval_ms / 1000,
    )

    async def close_resources() -> None:
        await sweeper.stop()

    return AppContainer(
        settings=resolved_settings,
        event_service=event_service,
        session_service=session_service,
        relay_service=relay_service,
        sweeper=sweeper,
        close_resources=close_resources,
    )
