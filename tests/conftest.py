"""Shared test fixtures for pytest.

Env defaults are set before anything imports `clipflow.main`, so the
module-level settings and engine pick up the test environment instead of a
developer's .env file.
"""

import os
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from clipflow.core.config import Settings
from clipflow.dependencies.db import create_engine, create_session_factory, init_models
from clipflow.dependencies.flow import get_flow_services
from clipflow.main import app
from clipflow.services.container import FlowServices, build_flow_services


def make_settings(**overrides: object) -> Settings:
    """Settings for tests: no env file, no detector, no paste delay."""
    values: dict[str, object] = {
        "ENVIRONMENT": "test",
        "DETECTOR_ENABLED": False,
        "PASTE_DELAY_SECONDS": 0,
        "LLM_PROVIDER": None,
        "ACTIVE_TRANSFORMATION": "clean-terminal-text",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg, arg-type]


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A fresh SQLite history database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    await init_models(engine)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def flow_services(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[FlowServices, None]:
    services = build_flow_services(test_settings, session_factory)
    try:
        yield services
    finally:
        await services.stop()


@pytest_asyncio.fixture
async def async_client(
    flow_services: FlowServices,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to the app with the test services injected."""
    app.dependency_overrides[get_flow_services] = lambda: flow_services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.pop(get_flow_services, None)
