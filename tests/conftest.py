"""
Shared test fixtures for the apiresult test suite.

Every test starts from default settings and default structlog configuration,
so environment changes and configure_structlog() calls never leak between tests.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from apiresult.config import get_settings

SETTINGS_ENV = (
    "APIRESULT_LOG_LEVEL",
    "APIRESULT_LOG_RENDERER",
    "APIRESULT_LOG_CHILD_FAILURES",
)


@pytest.fixture(autouse=True)
def default_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear APIRESULT_* variables and the cached settings around each test."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def default_structlog() -> Iterator[None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()

