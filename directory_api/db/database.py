"""
Persistence gateway

Owns the primary engine, an optional read-replica engine and their session
factories. The app factory builds one gateway, stores it on ``app.state.db``
and routes receive sessions through ``Depends(get_db)`` / ``Depends(get_read_db)``.
"""
import logging
import time
from contextlib import contextmanager
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from directory_api.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def attach_query_timing(engine: Engine, slow_query_ms: int) -> None:
    """Log statements slower than ``slow_query_ms`` as warnings"""

    @event.listens_for(engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _log_duration(conn, cursor, statement, parameters, context, executemany):
        started = conn.info["query_start_time"].pop()
        duration_ms = int((time.perf_counter() - started) * 1000)
        if duration_ms > slow_query_ms:
            logger.warning(
                "Slow query detected (%sms): %s", duration_ms, statement[:200],
                extra={"duration_ms": duration_ms}
            )


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, settings: Optional[Settings] = None, **engine_kwargs) -> Engine:
    """
    Create an engine with the pool bounds and statement timeout from settings.

    SQLite URLs skip pool sizing and get foreign-key enforcement switched on.
    Extra keyword arguments go straight to ``create_engine``.
    """
    settings = settings or get_settings()

    if url.startswith("sqlite"):
        connect_args = engine_kwargs.pop("connect_args", {"check_same_thread": False})
        engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        _enable_sqlite_foreign_keys(engine)
    else:
        options = {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout,
            "pool_recycle": settings.db_pool_recycle,
            "pool_pre_ping": True,
            "connect_args": {
                "connect_timeout": 10,
                "options": "-c statement_timeout={}".format(settings.db_statement_timeout_ms),
            },
        }
        options.update(engine_kwargs)
        engine = create_engine(url, **options)

    attach_query_timing(engine, settings.db_slow_query_ms)
    return engine


class DatabaseGateway:
    """Primary/replica engine pair with session factories"""

    def __init__(self, engine: Engine, read_engine: Optional[Engine] = None):
        self.engine = engine
        self.read_engine = read_engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self.ReadSessionLocal = (
            sessionmaker(autocommit=False, autoflush=False, bind=read_engine)
            if read_engine is not None else None
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseGateway":
        engine = build_engine(settings.database_url, settings)
        read_engine = None
        if settings.database_read_url:
            read_engine = build_engine(settings.database_read_url, settings)
            logger.info("Read replica configured")
        return cls(engine, read_engine)

    def create_all(self) -> None:
        """Create any missing tables on the primary"""
        from directory_api.db import models  # noqa: F401  registers mappers on Base
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        """Session on the primary; all writes go through here"""
        return self.SessionLocal()

    def read_session(self) -> Session:
        """Session on the replica, or on the primary if the replica is down"""
        if self.ReadSessionLocal is None:
            return self.SessionLocal()

        db = self.ReadSessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except OperationalError as e:
            db.close()
            logger.warning("Read replica unavailable, falling back to primary: {}".format(e))
            return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()
        if self.read_engine is not None:
            self.read_engine.dispose()


@contextmanager
def transaction_scope(db: Session) -> Generator[Session, None, None]:
    """
    Commit everything done inside the block, or roll all of it back.

    Used where several statements must land together, e.g. replacing a
    business's weekly hours.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


@lru_cache()
def get_gateway() -> DatabaseGateway:
    """Process-wide gateway for code running outside a request (Celery workers)"""
    return DatabaseGateway.from_settings(get_settings())


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: primary session for the current request"""
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()


def get_read_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: read-only session, replica first"""
    db = request.app.state.db.read_session()
    try:
        yield db
    finally:
        db.close()
