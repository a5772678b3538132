"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from quickbeam.adapters.local_image_storage import LocalImageStorage
from quickbeam.config import Settings
from quickbeam.containers import AppContainer, build_container
from quickbeam.services.clock import Clock


@dataclass
class ManualClock(Clock):
    """Clock that only moves when a test advances it."""

    current: datetime = field(
        default_factory=lambda: datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    )

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@dataclass
class FailingWriteStorage(LocalImageStorage):
    """Local storage whose writes always fail."""

    async def write(self, session_id: str, image_id: str, data: bytes) -> Path:
        raise PermissionError("read-only upload directory")


@dataclass
class FailingReadStorage(LocalImageStorage):
    """Local storage whose reads fail for reasons other than absence."""

    async def read(self, path: Path) -> bytes:
        raise PermissionError("unreadable image")


def stored_files(root: Path) -> list[Path]:
    return sorted(path for path in root.rglob("*") if path.is_file())


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "uploads",
        admin_token="admin-token",
        session_timeout_ms=120_000,
        client_timeout_ms=3_000,
        cleanup_interval_ms=60_000,
        polling_interval_ms=2_000,
    )


@pytest.fixture
def container(settings: Settings, clock: ManualClock) -> AppContainer:
    return build_container(settings, clock=clock)
