"""
Database session and connection pool setup
==========================================

Pool settings (PostgreSQL only):
- pool_size: persistent connections (default 10)
- max_overflow: extra connections at peak (pool_size + max_overflow)
- pool_timeout: max seconds to wait for a connection
- pool_recycle: connection recycle period
- pool_pre_ping: liveness check before use

The sweep opens one Session per record from worker threads, so the pool must
cover DOMAIN_VERIFICATION_SWEEP_WORKERS concurrent checkouts.
"""

import logging
import time
from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from app.config import settings

logger = logging.getLogger("cmms.db")

SLOW_QUERY_THRESHOLD_MS = settings.SLOW_QUERY_THRESHOLD_MS


def _engine_kwargs(url: str) -> dict:
    if make_url(url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
    }


engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    echo=settings.DB_ECHO,
    **_engine_kwargs(settings.SQLALCHEMY_DATABASE_URI),
)


# ---------------------------------------------------------------------------
# Slow query monitoring
# ---------------------------------------------------------------------------
@event.listens_for(engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    total_ms = (time.perf_counter() - conn.info["query_start_time"].pop()) * 1000

    if total_ms >= SLOW_QUERY_THRESHOLD_MS:
        stmt_preview = statement[:500] + "..." if len(statement) > 500 else statement
        logger.warning(
            "Slow query detected (%.2fms >= %dms): %s",
            total_ms, SLOW_QUERY_THRESHOLD_MS, stmt_preview,
        )


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_pool_status() -> dict:
    """Connection pool snapshot (PostgreSQL QueuePool only)."""
    pool = engine.pool
    if not hasattr(pool, "checkedout"):
        return {"pool": type(pool).__name__}
    return {
        "pool_size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "overflow": pool.overflow(),
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
    }
