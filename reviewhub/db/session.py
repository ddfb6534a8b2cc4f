from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from reviewhub.settings import Settings, get_settings


_settings = get_settings()


def _engine_kwargs(settings: Settings) -> dict:
    """
    Engine options. Every store wait is bounded by `store_timeout_seconds`:
    pool checkout, lock waits and (on PostgreSQL) statement execution. A
    timeout surfaces as OperationalError, which the repository reports as
    StoreUnavailable.
    """

    url = settings.resolved_db_url()
    timeout = settings.store_timeout_seconds
    kwargs: dict = {}
    if url.startswith("sqlite"):
        # `timeout` is how long SQLite waits on a locked database file.
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout}
    else:
        kwargs["pool_timeout"] = timeout
        if url.startswith("postgresql"):
            ms = int(timeout * 1000)
            kwargs["connect_args"] = {"options": f"-c statement_timeout={ms} -c lock_timeout={ms}"}
    if settings.db_isolation_level:
        # e.g. "REPEATABLE READ" on PostgreSQL so hierarchy reads are snapshot-consistent.
        kwargs["isolation_level"] = settings.db_isolation_level
    return kwargs


engine = create_engine(_settings.resolved_db_url(), **_engine_kwargs(_settings))

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session.

    Location queries issued on this session are narrowed to the caller's
    accessible locations once a router sets `Session.info["location_scope"]`
    (see reviewhub/db/filters.py).
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
