"""
Engine and session management (SQLAlchemy 2.0).

PostgreSQL in deployment; SQLite for local runs and tests. Sessions do not
autoflush: services decide when order rows hit the store, which is also
when tab totals are recomputed.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config.settings import DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            # One shared connection, or every session sees an empty database
            options["poolclass"] = StaticPool
        return options

    workers = os.cpu_count() or 4
    return {
        "pool_pre_ping": True,
        "pool_size": min(workers * 2 + 1, 20),
        "max_overflow": 10,
        "pool_recycle": 1800,
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Session for code outside a request (CLI, scripts).

        with get_db_context() as db:
            TabService(db).get_all_active_tabs()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """Commit, rolling back before re-raising on failure."""
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
