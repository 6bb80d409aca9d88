from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.db.base import Base
from libs.db.config import AsyncSessionLocal, engine


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an async database session, closing it when the caller is done.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_schema() -> None:
    """Create every table registered on ``Base.metadata``."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
