"""
Async engine, session factory & the `get_db` request dependency.

One AsyncSession per request: committed when the handler returns,
rolled back when it raises.  Services only flush; the one exception is
refresh-token reuse detection, which commits its soft-delete before
raising so the termination survives the rollback.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
