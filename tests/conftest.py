"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import copy

import pytest

from lab_portal.clients.storage import MemoryStorage
from lab_portal.core.config import AppSettings, get_settings
from lab_portal.services.session_store import SessionStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture()
def settings() -> AppSettings:
    """A private copy of the settings that tests may mutate freely."""
    return copy.deepcopy(get_settings())


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def store(storage: MemoryStorage, settings: AppSettings) -> SessionStore:
    return SessionStore(storage, settings.session)
