"""
Synchronous Database Access for ChainReel Worker

RQ tasks are synchronous, so the worker talks to the database shared with
the API through a plain SQLAlchemy engine. Several workers may insert and
delete chain records at once; on SQLite each connection waits on a busy
timeout under WAL instead of failing with "database is locked".
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

SQLITE_BUSY_TIMEOUT_MS = 5000

# Async drivers used by the API mapped to their sync counterparts
_SYNC_DRIVERS = {
    "sqlite+aiosqlite": "sqlite",
    "postgresql+asyncpg": "postgresql",
}


def get_database_url() -> str:
    """
    Database URL from DATABASE_URL, rewritten to a sync driver.

    Example:
        DATABASE_URL=sqlite+aiosqlite:////data/db/chainreel.db
        -> sqlite:////data/db/chainreel.db
    """
    url = make_url(os.environ.get("DATABASE_URL", "sqlite:////data/db/chainreel.db"))
    sync_driver = _SYNC_DRIVERS.get(url.drivername)
    if sync_driver:
        url = url.set(drivername=sync_driver)
    return url.render_as_string(hide_password=False)


def _enable_sqlite_wal(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.close()


_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Get or create the sync database engine."""
    global _engine
    if _engine is None:
        url = get_database_url()
        echo = os.environ.get("SQL_ECHO", "false").lower() == "true"
        if make_url(url).get_backend_name() == "sqlite":
            database = make_url(url).database
            if database and database != ":memory:":
                Path(database).parent.mkdir(parents=True, exist_ok=True)
            _engine = create_engine(url, echo=echo)
            _enable_sqlite_wal(_engine)
        else:
            _engine = create_engine(url, echo=echo, pool_pre_ping=True)
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False)
    return _SessionLocal


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Short-lived session; callers commit, errors roll back.

    Usage:
        with get_db_session() as db:
            db.add(record)
            db.commit()
    """
    session = get_session_factory()()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
