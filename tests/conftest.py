"""Shared pytest fixtures for the model picker bot test suite.

Non-fixture helpers (page and transport fakes, catalog builders) are in helpers.py.
"""

import sys
from pathlib import Path

import pytest

# Project root for the flat modules, tests dir for helpers.py
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from bot_config import CacheConfig  # noqa: E402
from catalog_cache import CatalogCache  # noqa: E402
from menu import MenuStateMachine  # noqa: E402
from session_registry import SessionRegistry  # noqa: E402

from helpers import FakeDriver, FakeExtractor, FakeFactory, RecordingTransport  # noqa: E402


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def cache(factory: FakeFactory, transport: RecordingTransport) -> CatalogCache:
    """Cache wired to fakes; no status-message delay."""
    return CatalogCache(
        registry=SessionRegistry(factory=factory),
        driver=FakeDriver(),
        extractor=FakeExtractor(),
        config=CacheConfig(status_message_ttl_seconds=0, session_wait_timeout_seconds=5),
        transport=transport,
    )


@pytest.fixture
def menu(cache: CatalogCache, transport: RecordingTransport) -> MenuStateMachine:
    return MenuStateMachine(cache, transport)
