# homecare/db/session.py
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from homecare.core.config import settings


def _sqlite_connect(dbapi_conn, _record) -> None:
    # SQLite ignores REFERENCES / ON DELETE CASCADE unless asked per connection
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()
    # let SQLAlchemy emit BEGIN itself so DDL and SAVEPOINTs are transactional
    dbapi_conn.isolation_level = None


def _sqlite_begin(conn) -> None:
    # "IMMEDIATE" when the transaction was opened through claim_write_lock()
    mode = conn.get_execution_options().get("sqlite_begin", "")
    conn.exec_driver_sql(f"BEGIN {mode}".strip())


def claim_write_lock(session: Session) -> None:
    """
    Open the session's transaction as a writer.

    SQLite allows one writer; a deferred BEGIN that later upgrades to a write
    lock fails with "database is locked" when another writer got there first.
    BEGIN IMMEDIATE makes the second writer wait for the first to finish
    instead, so it re-reads committed state (e.g. a slot that is now booked).
    No effect when a transaction is already open or on other dialects.
    """
    if not session.in_transaction():
        session.connection(execution_options={"sqlite_begin": "IMMEDIATE"})


def make_engine(url: Optional[str] = None, **kw) -> Engine:
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        kw.setdefault("connect_args", {"check_same_thread": False})
        eng = create_engine(url, echo=settings.SQL_ECHO, future=True, **kw)
        event.listen(eng, "connect", _sqlite_connect)
        event.listen(eng, "begin", _sqlite_begin)
        return eng

    return create_engine(
        url,
        echo=settings.SQL_ECHO,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        future=True,
        **kw,
    )


engine: Engine = make_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)
