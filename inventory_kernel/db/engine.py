"""
Engines and sessions for the inventory ledger.

Two backends are supported and they get different locking setups:

PostgreSQL
    Pooled connections at READ COMMITTED.  Writers that touch a StockRow lock
    it explicitly with SELECT ... FOR UPDATE (see UnitOfWork / StockLedger).

SQLite
    No row locks exist, so every transaction starts with BEGIN IMMEDIATE and
    writers queue on the database-wide write lock instead.  pysqlite's own
    implicit transaction handling is switched off so that our BEGIN is the one
    actually sent.  A writer that waits longer than the busy timeout gets
    ``OperationalError: database is locked``, which UnitOfWork retries.

Nothing here keeps a process-wide engine.  Callers (the CLI, the test
fixtures, an application's wiring) build one, hand its session factory to a
UnitOfWork and dispose of it themselves.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _is_sqlite(database_url: str) -> bool:
    return database_url.split(":", 1)[0].split("+", 1)[0] == "sqlite"


def _enable_immediate_transactions(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """Engine for ``database_url`` with the locking setup its dialect needs.

    Pool options apply to PostgreSQL only; ``sqlite_busy_timeout`` (seconds)
    applies to SQLite only.  The keyword names match
    ``DatabaseSettings.engine_options()``.
    """
    if _is_sqlite(database_url):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": sqlite_busy_timeout, "check_same_thread": False},
        )
        _enable_immediate_transactions(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_built",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Loaded rows stay readable after commit; UnitOfWork hands them back to
    # callers once the transaction is over.
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Commit on clean exit, roll back and re-raise otherwise.

    A plain one-shot transaction with no conflict retry.  Ledger writes go
    through UnitOfWork.run() instead.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401  registers every table

    return Base.metadata


def create_tables(engine: Engine) -> None:
    _metadata().create_all(engine)


def drop_tables(engine: Engine) -> None:
    """Drop every ledger table. Tests and throwaway databases only."""
    _metadata().drop_all(engine)
