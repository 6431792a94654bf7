"""Async SQLAlchemy engine, session factory and request-scoped session dependency."""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from farmtrace.config import get_settings


def _connect_args(database_url: str) -> dict:
    # server_settings and timeout are asyncpg connect() keywords.
    if not database_url.startswith("postgresql+asyncpg"):
        return {}
    settings = get_settings()
    return {
        "server_settings": {
            "statement_timeout": str(settings.database_statement_timeout_ms),
        },
        "timeout": settings.database_pool_timeout_seconds,
    }


_settings = get_settings()

engine = create_async_engine(
    _settings.database_url,
    pool_pre_ping=True,
    pool_size=_settings.database_pool_size,
    pool_timeout=_settings.database_pool_timeout_seconds,
    connect_args=_connect_args(_settings.database_url),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session per request; commit on success, roll back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
