from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from loguru import logger

from .config import settings


def create_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL, echo=False, future=True, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = create_engine()
AsyncSessionLocal = create_sessionmaker(engine)


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create the habits, daily_stats and last_logins tables."""
    from .models.habit import Habit, DailyStat, LastLogin  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database tables created/verified")


@asynccontextmanager
async def get_session(factory: sessionmaker | None = None) -> AsyncGenerator[AsyncSession, None]:
    session = (factory or AsyncSessionLocal)()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
