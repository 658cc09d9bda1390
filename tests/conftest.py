"""
Pytest fixtures for Woven City tests.

Provides in-memory stores, a fixed clock and seeded randomness so the
simulation is deterministic under test.
"""

import random
from datetime import datetime
from pathlib import Path

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from woven_city.config import BalanceConfig
from woven_city.content.loader import ContentLibrary, load_builtin_content
from woven_city.state import (
    City,
    CityManager,
    EventBus,
    MemoryCityStore,
)
from woven_city.systems.threads import ThreadGraph


FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
def now():
    """The moment every test clock reports."""
    return FIXED_NOW


@pytest.fixture
def clock(now):
    """Clock callable that never moves."""
    return lambda: now


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def bus():
    """Fresh event bus per test."""
    return EventBus()


@pytest.fixture
def config():
    """Default balance values, safe to mutate."""
    return BalanceConfig()


@pytest.fixture
def fast_config():
    """Config with no delay between ticks."""
    config = BalanceConfig()
    config.simulation.tick_delay = 0
    return config


@pytest.fixture
def memory_store():
    """In-memory city store for testing."""
    return MemoryCityStore()


@pytest.fixture(scope="session")
def builtin_content():
    """Content shipped with the package (loaded once)."""
    return load_builtin_content()


@pytest.fixture
def content(builtin_content):
    """Built-in content; moments are copied per session by their consumers."""
    return builtin_content


@pytest.fixture
def city(now):
    """Fresh city touched by the planner just now."""
    return City(name="Test City", created_at=now, last_interaction=now)


@pytest.fixture
def graph(city, rng, bus):
    """Thread graph over the test city, without dialogue."""
    return ThreadGraph(city, rng=rng, bus=bus)


@pytest.fixture
def manager(memory_store, content, fast_config, bus, rng, clock):
    """City manager with in-memory store and built-in content."""
    return CityManager(
        store=memory_store,
        content=content,
        config=fast_config,
        bus=bus,
        rng=rng,
        clock=clock,
    )


@pytest.fixture
def empty_manager(memory_store, fast_config, bus, rng, clock):
    """City manager with no content at all."""
    return CityManager(
        store=memory_store,
        content=ContentLibrary(),
        config=fast_config,
        bus=bus,
        rng=rng,
        clock=clock,
    )

