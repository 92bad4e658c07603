import logging, time
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import get_settings

log = logging.getLogger("app.sql")
S = get_settings()


def install_slow_query_log(sync_engine: Engine, threshold_ms: int) -> None:
    """Warn on statements slower than threshold_ms (statement text truncated, never parameters)."""

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):
        context._otp_query_t0 = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany):
        t0 = getattr(context, "_otp_query_t0", None)
        if t0 is None:
            return
        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        if elapsed_ms >= threshold_ms:
            log.warning("slow_query", extra={"elapsed_ms": elapsed_ms, "sql": statement[:200]})


engine = create_async_engine(S.DATABASE_URL, pool_pre_ping=True)
install_slow_query_log(engine.sync_engine, S.SLOW_QUERY_MS)

# SqlOtpStore forces expire_on_commit=False per session; other callers get the same default here
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
