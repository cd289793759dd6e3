"""Database engine and session management.

Request handlers get their session from ``get_db``; scheduler jobs and
scripts that run outside a request use ``session_scope``. Both commit when
the unit of work succeeds.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agent_lifecycle.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.async_database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_pre_ping=True,
    pool_recycle=3600,
    # Statements carry agent personal data
    echo=False,
)

# Services read attributes after commit, and processes hand rows across commits
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Open a session for work outside a request.

    Commits when the block exits normally and rolls back on database errors.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with session_scope() as session:
        yield session
