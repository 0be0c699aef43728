"""Shared test fixtures and configuration for browser-console-tap tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from console_tap.capture.console_observer import Resolution
from console_tap.capture.recorder import SessionRecorder


class FakeClock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, ms: int) -> datetime:
        self.current = self.current + timedelta(milliseconds=ms)
        return self.current


@pytest.fixture
def clock():
    """Deterministic clock starting at 2024-01-01T00:00:00Z."""
    return FakeClock()


@pytest.fixture
def recorder(clock):
    """Session recorder driven by the fake clock."""
    return SessionRecorder(clock=clock)


MISSING = object()


class FakeArgument:
    """Console argument handle with scripted resolution results."""

    def __init__(self, structured=MISSING, text=MISSING, label="JSHandle@object"):
        self._structured = structured
        self._text = text
        self._label = label

    def resolve_structured(self):
        if isinstance(self._structured, Exception):
            raise self._structured
        if self._structured is MISSING:
            return Resolution.failure("no structured value")
        return Resolution.success(self._structured)

    def resolve_text(self):
        if isinstance(self._text, Exception):
            raise self._text
        if self._text is MISSING:
            return Resolution.failure("not an element")
        return Resolution.success(self._text)

    def __str__(self):
        return self._label


@pytest.fixture
def fake_argument():
    """Factory for console argument handles."""
    return FakeArgument


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
