import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Optional overrides for test runs (LOG_LEVEL, OPERATION_TIMEOUT_SECONDS, ...)
env_test_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402

# Import all models so metadata includes every table
from services.catalog_service import models as _catalog_models  # noqa: E402,F401

# Clear cached settings to reload with new env vars
get_settings.cache_clear()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh SQLite database file per test, with every table created.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}", future=True
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to the test database, configured like the app's.
    """
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session; the database file is discarded with tmp_path.
    """
    async with session_factory() as session:
        yield session
