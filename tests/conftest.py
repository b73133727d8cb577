# tests/conftest.py

"""Shared pytest fixtures for all realtime_search tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def no_backoff() -> Generator[None, None, None]:
    """Zero the retry backoff globally so retry loops run instantly."""
    with patch("src.config.settings.Settings.BACKOFF_BASE", 0.0):
        yield
