"""Database engine and session management."""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from fpa.config import settings

Base = declarative_base()


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite connections are shared across tasks."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory handed to the scenario store."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = build_session_factory(engine)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    # Register the scenario tables on Base.metadata
    from fpa.scenarios import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
