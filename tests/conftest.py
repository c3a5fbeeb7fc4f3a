# tests/conftest.py
from __future__ import annotations

from pathlib import Path

import pytest

from mediasend.core.cache import ContentCache
from tests.utils import (
    ManualScheduler,
    RecordingDispatcher,
    RecordingNotifier,
    TickClock,
    make_policy,
    png_bytes as _make_png,
)


# -------- Policy & cache fixtures --------
@pytest.fixture
def policy(tmp_path: Path):
    return make_policy(tmp_path)


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def cache(policy, clock):
    """ContentCache rooted at <tmp>/media/.cache with a deterministic clock."""
    return ContentCache.from_policy(policy, clock=clock)


@pytest.fixture
def small_cache(policy, clock):
    """Factory for a cache with a tiny entry limit (eviction tests)."""

    def _factory(max_entries: int = 3) -> ContentCache:
        return ContentCache(policy.cache_dir, max_entries=max_entries, clock=clock)

    return _factory


# -------- Collaborator fixtures --------
@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def png_bytes():
    """
    Fixture that returns a callable to generate PNG bytes with low compression.
    Usage:
        data = png_bytes(64, 64)
    """
    return _make_png


@pytest.fixture
def no_network(monkeypatch):
    """Fail loudly if any code path tries to reach the network."""

    def _boom(*a, **k):
        raise AssertionError("unexpected network access")

    monkeypatch.setattr("mediasend.core.fetch.downloader.requests.get", _boom)


# -------- Pytest markers --------
def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks integration tests")
