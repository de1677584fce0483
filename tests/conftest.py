"""Shared test fixtures for cellflow."""

import pytest

from cellflow import cursor_cache, set_debug


@pytest.fixture(autouse=True)
def _debug_and_clean_registry():
    """Run every test with instrumentation on and an empty cursor registry."""
    set_debug(True)
    cursor_cache.clear()
    yield
    set_debug(True)
    cursor_cache.clear()
