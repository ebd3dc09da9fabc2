"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode: create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from droneflow.config import settings

# Connection pool: min 5, max 20 connections (Postgres).
# SQLite (local dev) manages its own pool and rejects the sizing args.
_pool_args = {} if settings.database_url.startswith("sqlite") else {
    "pool_size": 5,
    "max_overflow": 15,
}

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_pool_args,
)

# Session factory: each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
