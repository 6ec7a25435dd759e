from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from multiblog.config import settings


def build_engine(database_url: str):
    """Create the async engine with pool settings matching the environment."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=settings.debug)
    if settings.environment == "production":
        return create_async_engine(
            database_url,
            pool_size=20,
            max_overflow=50,
            pool_timeout=60,
            pool_recycle=1800,
        )
    return create_async_engine(
        database_url,
        echo=settings.debug,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
    )


def build_session_factory(bind) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, autoflush=False, expire_on_commit=False)


Base = declarative_base()
