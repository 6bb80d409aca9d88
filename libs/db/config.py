from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.DATABASE_URL``.

    Pool sizing only applies to server databases; SQLite picks its own pool.
    """
    options: dict[str, Any] = {
        # echo=True for local dev to see SQL queries
        "echo": settings.ENVIRONMENT == "local" and settings.LOG_LEVEL == "DEBUG",
        "future": True,
    }
    if not settings.is_sqlite:
        options.update(
            pool_pre_ping=True,  # Test connections before using
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return create_async_engine(settings.DATABASE_URL, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


settings = get_settings()

engine = build_engine(settings)

AsyncSessionLocal = build_session_factory(engine)
