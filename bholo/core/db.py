"""Database module with async SQLAlchemy engine and session management."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .settings import get_settings

# SQLAlchemy base for models
Base = declarative_base()


def create_engine_for(db_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=echo)
    return create_async_engine(
        db_url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session maker bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@lru_cache()
def get_engine() -> AsyncEngine:
    """Process-wide engine built from settings."""
    settings = get_settings()
    return create_engine_for(settings.db_url, echo=settings.db_echo)


@lru_cache()
def get_session_factory() -> async_sessionmaker:
    """Process-wide session maker built from settings."""
    return create_session_factory(get_engine())


async def create_all(engine: AsyncEngine = None):
    """Create all tables in the database."""
    # registers the mapped tables on Base.metadata
    from . import models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
