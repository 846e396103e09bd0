"""
Database helpers shared by the lounge services.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import AppConfig

logger = logging.getLogger(__name__)

_engine = None
_session_factory: sessionmaker | None = None
_scoped_session: scoped_session | None = None
# SQLite runs on one shared connection (StaticPool); sessions take turns on it.
_sqlite_lock: threading.RLock | None = None


def init_engine(config: AppConfig | None = None, database_url: str | None = None):
    """
    Initialize a SQLAlchemy engine and session factory.

    The engine is stored as a module-level singleton so that every blueprint
    and the document store reuse the same connection pool.
    """
    global _engine, _session_factory, _scoped_session, _sqlite_lock

    if _engine is None:
        url = database_url or (config.database_url if config else None)
        if not url:
            raise RuntimeError("init_engine needs a config or an explicit database_url")

        engine_kwargs: dict[str, Any] = {
            "pool_pre_ping": True,
            "future": True,
        }

        if url.startswith("sqlite"):
            engine_kwargs.update(
                {
                    "connect_args": {"check_same_thread": False},
                    "poolclass": StaticPool,
                    "pool_pre_ping": False,
                }
            )
            _sqlite_lock = threading.RLock()
        else:
            engine_kwargs.update({"pool_size": 10, "max_overflow": 20, "pool_recycle": 3600})

        _engine = create_engine(url, **engine_kwargs)

        @event.listens_for(_engine, "before_cursor_execute")
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault("query_start_time", []).append(time.time())

        @event.listens_for(_engine, "after_cursor_execute")
        def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            total = time.time() - conn.info["query_start_time"].pop(-1)
            if total > 1.0:
                logger.warning(f"Slow query detected ({total:.2f}s): {statement[:200]}...")

        _session_factory = sessionmaker(
            bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False
        )
        _scoped_session = scoped_session(_session_factory)

    return _engine


def init_db(metadata) -> None:
    """Ensure all tables declared on the provided metadata exist."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_engine first.")

    try:
        metadata.create_all(_engine)
        logger.info("Database schema created successfully")
    except OperationalError as exc:
        logger.warning("Schema creation warning: %s", exc)


def dispose_engine() -> None:
    """Drop the engine singleton (used on shutdown and between tests)."""
    global _engine, _session_factory, _scoped_session, _sqlite_lock

    if _scoped_session is not None:
        _scoped_session.remove()
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
    _scoped_session = None
    _sqlite_lock = None


def _connection_guard() -> AbstractContextManager:
    return _sqlite_lock if _sqlite_lock is not None else nullcontext()


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Yields a session and automatically rolls back when an exception occurs. It
    commits by default and always ensures the session is removed from the scoped
    registry afterwards.
    """
    if _scoped_session is None:
        raise RuntimeError("Session factory unavailable. Call init_engine first.")

    with _connection_guard():
        session: Session = _scoped_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            _scoped_session.remove()
