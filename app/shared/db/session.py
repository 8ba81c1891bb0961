import time
from typing import AsyncGenerator, Any, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
import structlog

from app.shared.core.config import Settings, get_settings

logger = structlog.get_logger()
settings = get_settings()


def engine_options(settings: Settings) -> Dict[str, Any]:
    """NullPool for tests and SQLite files; a sized pool for the production database."""
    if settings.TESTING or settings.DATABASE_URL.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **engine_options(settings),
)


@event.listens_for(engine.sync_engine, "before_cursor_execute")
def _mark_query_start(conn, _cursor, _statement, _parameters, _context, _executemany):
    conn.info.setdefault("query_started_at", []).append(time.perf_counter())


@event.listens_for(engine.sync_engine, "after_cursor_execute")
def _log_slow_query(conn, _cursor, statement, _parameters, _context, _executemany):
    """Path-prefix filters over users with many assets are the usual offenders."""
    elapsed = time.perf_counter() - conn.info["query_started_at"].pop()
    if elapsed > settings.DB_SLOW_QUERY_SECONDS:
        logger.warning(
            "slow_query_detected",
            duration_seconds=round(elapsed, 3),
            statement=statement if len(statement) <= 200 else statement[:200] + "...",
        )


# expire_on_commit=False keeps ORM objects readable after commit in async code
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Analytics is read-only, so nothing is committed here."""
    async with async_session_maker() as session:
        yield session
