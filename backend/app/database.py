"""
XFound Backend — Database Session Management
==============================================

What:  The async engine, the session factory and the per-request session.
Why:   Users, listings and chats all live in one PostgreSQL database.
How:   A pooled asyncpg engine; `get_db_session` commits when the handler
       returns and rolls back when it raises.
Who:   HTTP route handlers via Depends(get_db_session); the chat store opens
       its own sessions from `async_session_factory` because WebSocket
       frames have no request scope.

Pool sizing (DB_POOL_SIZE / DB_MAX_OVERFLOW):
    20 steady + 10 burst connections per process. Every socket message costs
    one short transaction, so the pool is shared by HTTP and chat traffic.
    Connections are pre-pinged and recycled hourly.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit, which the
# chat relay relies on when it serializes a snapshot right after an append
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every model registers with this metadata, which Alembic reads for
    --autogenerate.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per HTTP request.

    The handler's writes are committed after it returns, so a service that
    raises (an XFoundError included) leaves nothing behind. Services call
    `flush()` when they need generated values before the commit.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def dispose_engine() -> None:
    """Gracefully closes all pooled connections (called on shutdown)."""
    await engine.dispose()
