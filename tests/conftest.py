"""Shared test fixtures for the keyscreen test suite.

Provides common fixtures used across unit tests: a display context with
registered slots, a controllable clock, mock HID handles and a simple
in-memory data source.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from keyscreen.domain.models import DisplayContext, Renderer, ScreenSlot
from keyscreen.sources.base import DataSource


class FakeClock:
    """A monotonic clock the test moves by hand."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticSource(DataSource):
    """Serves fixed text; counts refreshes; can be told to fail."""

    def __init__(self, slot: ScreenSlot, text: str = "", fail: bool = False, **kwargs) -> None:
        super().__init__(slot, **kwargs)
        self.text = text
        self.fail = fail
        self.fetch_count = 0

    async def fetch(self) -> Renderer:
        self.fetch_count += 1
        if self.fail:
            raise RuntimeError("source unavailable")
        text = self.text
        return lambda width, height: text


# ---------------------------------------------------------------------------
# State Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_source(clock: FakeClock):
    """Build a StaticSource for a slot, driven by the shared fake clock."""

    def _make(slot: ScreenSlot, **kwargs) -> StaticSource:
        kwargs.setdefault("active_interval", 1.0)
        kwargs.setdefault("clock", clock)
        return StaticSource(slot, **kwargs)

    return _make


@pytest.fixture
def context() -> DisplayContext:
    """A context with three data screens (slots 0..3)."""
    ctx = DisplayContext()
    for name in ("perf", "stocks", "weather"):
        ctx.add_slot(name)
    return ctx


# ---------------------------------------------------------------------------
# Mock Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_handle() -> AsyncMock:
    """A HidHandle stand-in; reads return no pending report."""
    handle = AsyncMock()
    handle.path = b"/dev/hidraw-test"
    handle.is_open = True
    handle.write.return_value = 32
    handle.read.return_value = b""
    return handle


@pytest.fixture
def mock_devices() -> MagicMock:
    """A DeviceManager stand-in with nothing attached."""
    devices = MagicMock()
    devices.handle = None
    devices.ensure_connected = AsyncMock(return_value=None)
    devices.discard = AsyncMock()
    devices.close = AsyncMock()
    return devices


@pytest.fixture
def mock_transport() -> MagicMock:
    transport = MagicMock()
    transport.push = AsyncMock(return_value=True)
    return transport
