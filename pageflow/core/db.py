from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# Declarative base for all models
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for the configured database"""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_async_engine(database_url, future=True, echo=echo, connect_args=connect_args)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to one engine"""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables known to the metadata (development and tests)"""
    # Register every model on Base.metadata
    import pageflow.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session from the application's factory"""
    async with request.app.state.session_factory() as session:
        yield session
