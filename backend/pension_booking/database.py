from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Engine is built on first use so importing the app needs no database."""
    settings = get_settings()
    engine = create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def async_session() -> AsyncSession:
    return get_sessionmaker()()
