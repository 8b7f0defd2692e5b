"""
Database session management.

WHY: Each request runs on its own AsyncSession. The whole request is one
transaction: invoice creation, numbering and item writes either commit
together or roll back together.
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import settings


# WHY: pool_pre_ping recycles stale connections before a request uses them.
engine = create_async_engine(
    settings.async_database_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

# WHY: expire_on_commit=False keeps loaded invoices readable after commit,
# since async sessions cannot lazy-load expired attributes.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get a request-scoped database session.

    Commits when the endpoint returns, rolls back when it raises.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
