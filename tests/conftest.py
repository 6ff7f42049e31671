"""Core test fixtures for the penumbra project."""

import logging
import os
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest
import structlog

from penumbra.errors.handler import ErrorHandler
from penumbra.operations.events import EventBus, create_event_bus
from penumbra.operations.launcher import OperationLauncher
from penumbra.operations.models import LogEntry, LogLevel
from penumbra.operations.registry import OperationRegistry
from penumbra.protocols import LogPanelProtocol, NotifierProtocol


BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the user's config files and PENUMBRA_* variables."""
    for key in list(os.environ):
        if key.startswith("PENUMBRA_"):
            monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging so no handler outlives the stream it was given."""
    root_logger = logging.getLogger()
    saved_level = root_logger.level
    saved_handlers = root_logger.handlers[:]
    yield
    for handler in root_logger.handlers[:]:
        if handler not in saved_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.handlers = saved_handlers
    root_logger.setLevel(saved_level)
    logging.getLogger("asyncio").setLevel(logging.NOTSET)
    structlog.reset_defaults()


@pytest.fixture
def registry() -> OperationRegistry:
    return OperationRegistry()


@pytest.fixture
def event_bus() -> EventBus:
    return create_event_bus()


@pytest.fixture
def mock_notifier() -> Mock:
    return Mock(spec=NotifierProtocol)


@pytest.fixture
def mock_log_panel() -> Mock:
    return Mock(spec=LogPanelProtocol)


@pytest.fixture
def error_handler(registry, mock_notifier) -> ErrorHandler:
    return ErrorHandler(registry, mock_notifier)


@pytest.fixture
def launcher(registry, error_handler, mock_log_panel) -> OperationLauncher:
    return OperationLauncher(registry, error_handler, mock_log_panel)


@pytest.fixture
def make_entry() -> Callable[..., LogEntry]:
    """Build log entries at a fixed offset (in ms) from BASE_TIME."""

    def _make(
        message: str, offset_ms: int = 0, level: LogLevel = LogLevel.INFO
    ) -> LogEntry:
        return LogEntry(
            message=message,
            level=level,
            timestamp=BASE_TIME + timedelta(milliseconds=offset_ms),
        )

    return _make


@pytest.fixture
def device_files(tmp_path) -> tuple[Path, Path]:
    """A readable DA file and preloader file."""
    da = tmp_path / "da.bin"
    da.write_bytes(b"\x00" * 16)
    preloader = tmp_path / "preloader.bin"
    preloader.write_bytes(b"\x00" * 16)
    return da, preloader


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
