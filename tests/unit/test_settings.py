"""Unit tests for settings, engine wiring and log formatting."""

import json
import logging

import pytest
from libs.common.config import Settings
from libs.common.logging import JsonFormatter
from libs.db.config import build_engine, build_session_factory
from libs.db.session import get_async_db
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.mark.unit
def test_postgres_url_uses_psycopg_driver():
    settings = Settings(DATABASE_URL="postgresql://user:pw@localhost:5432/catalog")
    assert settings.DATABASE_URL == "postgresql+psycopg://user:pw@localhost:5432/catalog"
    assert not settings.is_sqlite


@pytest.mark.unit
def test_plain_sqlite_url_uses_aiosqlite_driver():
    settings = Settings(DATABASE_URL="sqlite:///./local.db")
    assert settings.DATABASE_URL == "sqlite+aiosqlite:///./local.db"
    assert settings.is_sqlite


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sqlite_engine_and_session_factory():
    engine = build_engine(Settings(DATABASE_URL="sqlite+aiosqlite:///:memory:"))
    try:
        assert engine.dialect.name == "sqlite"
        factory = build_session_factory(engine)
        async with factory() as session:
            assert isinstance(session, AsyncSession)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_async_db_yields_a_session():
    sessions = get_async_db()
    session = await sessions.__anext__()
    assert isinstance(session, AsyncSession)
    await sessions.aclose()


@pytest.mark.unit
def test_json_formatter_emits_one_json_object():
    record = logging.LogRecord(
        "catalog", logging.WARNING, __file__, 42, "stock low for %s", ("SKU-1",), None
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["message"] == "stock low for SKU-1"
    assert payload["line"] == 42
