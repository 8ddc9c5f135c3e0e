"""
Shared pytest fixtures and configuration for rebound tests.

This module provides:
- Settings cache isolation between tests
- Logging context isolation between tests
- Fixtures for the scripted operations in ``tests._support``

Usage:
    Fixtures are auto-discovered by pytest:

    def test_something(recording_backoff, counting_operation):
        ...
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure rebound and the tests package are importable
_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT / "src"))
sys.path.insert(0, str(_ROOT))

from rebound.core.logging import clear_context
from rebound.core.settings import clear_settings_cache
from tests._support import CountingOperation, RecordingBackoff


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings so env overrides in one test never leak."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def clean_log_context() -> Generator[None, None, None]:
    clear_context()
    yield
    clear_context()


# =============================================================================
# Operation / Backoff Fixtures
# =============================================================================


@pytest.fixture
def recording_backoff() -> RecordingBackoff:
    return RecordingBackoff()


@pytest.fixture
def counting_operation() -> CountingOperation:
    return CountingOperation()
