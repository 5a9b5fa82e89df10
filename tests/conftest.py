"""
Pytest configuration and fixtures for test isolation.

This module provides fixtures and configuration to ensure proper test isolation
and prevent test interference when running the full test suite, plus the
shared database fixtures used by the store-backed tests.
"""

import logging
import os
import sys
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from config import Environment, HearsayConfig, get_config
from tests.fixtures import TEST_GUILD_ID, DatabaseFixture, StoreSeeder
from utils.service_container import ServiceContainer, build_container
from utils.sqlalchemy_db import SessionMaker


@pytest.fixture(autouse=True)
def reset_environment() -> Generator[None, None, None]:
    """
    Reset environment variables and config state between tests.
    """
    original_env = dict(os.environ)

    yield

    os.environ.clear()
    os.environ.update(original_env)
    get_config.cache_clear()


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """
    Reset logging configuration between tests.
    """
    original_level = logging.getLogger().level
    original_handlers = logging.getLogger().handlers[:]

    yield

    logging.getLogger().setLevel(original_level)
    logging.getLogger().handlers = original_handlers


@pytest.fixture
def test_config() -> HearsayConfig:
    """Configuration pointing at an in-memory database."""
    return HearsayConfig(
        environment=Environment.TESTING,
        bot_token="test-token",
        guild_id=TEST_GUILD_ID,
        database_url="sqlite+aiosqlite:///:memory:",
        logfile=None,
    )


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[DatabaseFixture, None]:
    """A fresh in-memory database with every table created."""
    async with DatabaseFixture() as db:
        yield db


@pytest.fixture
def session_maker(database: DatabaseFixture) -> SessionMaker:
    return database.session_maker


@pytest.fixture
def seed(session_maker: SessionMaker) -> StoreSeeder:
    return StoreSeeder(session_maker)


@pytest.fixture
def container(session_maker: SessionMaker, test_config: HearsayConfig) -> ServiceContainer:
    """The production service wiring around the test database."""
    return build_container(session_maker, test_config)
