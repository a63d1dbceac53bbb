from __future__ import annotations

from pathlib import Path

from sqlalchemy import Table, create_engine, event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class UnsupportedDialectError(RuntimeError):
    pass


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Configure SQLite for predictable transactions and concurrent reads."""

    # Hand BEGIN over to SQLAlchemy (see `_begin_sqlite`) so SAVEPOINT and DDL
    # participate in the surrounding transaction.
    dbapi_connection.isolation_level = None

    cursor = dbapi_connection.cursor()
    # Wait for locks instead of failing immediately.
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine for `url`.

    SQLite engines get the pragmas above; every other backend is created as-is.
    """

    if url.startswith("sqlite"):
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine = create_engine(url, connect_args=connect_args, **kwargs)
        event.listen(engine, "connect", _set_sqlite_pragmas)
        event.listen(engine, "begin", _begin_sqlite)
        return engine

    return create_engine(url, pool_pre_ping=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def upsert_insert(dialect_name: str, table: Table):
    """Return a dialect `insert` construct that supports ON CONFLICT clauses."""

    try:
        insert_fn = _UPSERT_INSERTS[dialect_name]
    except KeyError:
        raise UnsupportedDialectError(
            f"ON CONFLICT upserts are not supported for dialect={dialect_name}"
        ) from None
    return insert_fn(table)
