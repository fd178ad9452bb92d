"""Pytest configuration and fixtures."""

from datetime import datetime

import pytest

from echolayer.orchestration.orchestrator import Orchestrator
from echolayer.providers.identity_source import InMemoryIdentitySource
from echolayer.settings import Settings, get_settings

from factories import FIXED_NOW


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Drop the cached Settings so environment changes in one test do not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time for deterministic scoring and decay."""
    return FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def identity_source() -> InMemoryIdentitySource:
    return InMemoryIdentitySource({"creator": 0.6, "sharer": 0.8})


@pytest.fixture
def orchestrator(settings: Settings, identity_source: InMemoryIdentitySource) -> Orchestrator:
    """Fully wired orchestrator with in-memory collaborators."""
    return Orchestrator.from_settings(settings, identity_source=identity_source)
