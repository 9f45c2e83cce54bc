"""Database engine, session factory, and declarative base.

One DeclarativeBase for every table (users, projects, roles, memberships,
system settings). The session dependency commits on success and rolls back
on any exception so a failed guard never leaves a half-applied mutation.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from punt.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local dev) uses a static pool that rejects sizing args
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_kwargs(settings.database_url),
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Yield a session for one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
