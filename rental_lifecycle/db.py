# rental_lifecycle/db.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .errors import PersistenceUnavailable


class Base(DeclarativeBase):
    pass


def _install_sqlite_hooks(engine: Engine) -> None:
    """
    pysqlite opens transactions lazily and only on writes, so two sessions can
    both read "no conflicting booking" before either writes. Taking the write
    lock at BEGIN makes every transaction serializable, which is what the
    booking check-then-insert needs.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, *, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, future=True, **kwargs)
        _install_sqlite_hooks(engine)
        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True, future=True)


engine = build_engine(settings.database_url, echo=settings.sql_echo)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    """
    IMPORTANT (Postgres):
    If any SQL statement fails, the transaction is aborted and the session
    cannot run further statements until a rollback happens.

    This dependency guarantees rollback on exceptions so errors don't cascade
    into "InFailedSqlTransaction" on later queries in the same request.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One lifecycle operation == one transaction.

    Commits when the block exits cleanly, rolls back on any exception and
    re-raises it. Connection-level failures surface as PersistenceUnavailable
    so callers can tell them apart from business errors.
    """
    try:
        yield db
        db.commit()
    except OperationalError as e:
        db.rollback()
        raise PersistenceUnavailable(str(e.orig) if e.orig is not None else str(e)) from e
    except Exception:
        db.rollback()
        raise
