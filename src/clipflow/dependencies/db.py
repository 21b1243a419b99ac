"""Database engine and session factory using SQLAlchemy's async engine.

History lives in a local SQLite file reached through aiosqlite. The engine
does not open the file until first use, so importing this module has no
side effects on disk.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clipflow.core.config import get_settings
from clipflow.models import Base


def _load_env_files() -> None:  # pragma: no cover - side-effect only
    # Pick up .env / .env.dev from the repo root or any parent for local runs
    for fname in (".env", ".env.dev"):
        for p in Path(__file__).resolve().parents:
            candidate = p / fname
            if candidate.exists():
                load_dotenv(dotenv_path=candidate, override=False)
                return


def normalize_sqlite_url(url: str) -> str:
    """Coerce a plain sqlite URL to the aiosqlite driver."""
    if url.startswith("sqlite+aiosqlite://"):
        return url
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    return url


def _get_database_url() -> str:
    _load_env_files()
    url = os.getenv("DATABASE_URL") or get_settings().DATABASE_URL
    return normalize_sqlite_url(url)


def create_engine(url: str) -> AsyncEngine:
    return create_async_engine(normalize_sqlite_url(url), future=True, echo=False)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


DATABASE_URL = _get_database_url()
engine: AsyncEngine = create_engine(DATABASE_URL)
AsyncSessionLocal = create_session_factory(engine)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Create any missing tables. There are no migrations for the history log."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

