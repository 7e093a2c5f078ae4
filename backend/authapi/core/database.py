import logging
import time
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from authapi.core.config import settings

logger = logging.getLogger(__name__)

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,   # checks stale connections
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):  # noqa: ARG001
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):  # noqa: ARG001
    started = conn.info["query_start_time"].pop(-1)
    duration_ms = (time.perf_counter() - started) * 1000
    # Parameters are left out on purpose: they carry password hashes and codes.
    logger.info("query=%s duration=%.1fms", " ".join(statement.split())[:200], duration_ms)


def install_query_timing(target: Engine) -> None:
    """Log every SQL statement with its wall-clock duration."""
    if event.contains(target, "before_cursor_execute", _before_cursor_execute):
        return
    event.listen(target, "before_cursor_execute", _before_cursor_execute)
    event.listen(target, "after_cursor_execute", _after_cursor_execute)


if settings.LOG_SQL_TIMING:
    install_query_timing(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
