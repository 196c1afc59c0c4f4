"""
Shared pytest fixtures and configuration for fetchspine tests.

This module provides:
- A scripted in-memory transport (no sockets)
- A fake monotonic clock whose sleep advances time instantly
- A recording sleep for backoff assertions
- Settings cache cleanup for test isolation

Usage:
    Fixtures are auto-discovered by pytest::

        @pytest.mark.asyncio
        async def test_something(fake_transport, recording_sleep):
            ...

    The doubles themselves live in ``tests/fakes.py`` for direct import.
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure fetchspine package and the shared test doubles are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeClock, FakeTransport, RecordingSleep  # noqa: E402
from fetchspine.core.settings import clear_settings_cache  # noqa: E402


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Fresh settings per test, unaffected by the developer's environment."""
    for name in list(os.environ):
        if name.startswith("FETCHSPINE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(Path(__file__).parent)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Test Doubles
# =============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
