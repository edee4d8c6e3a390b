"""
Module: bakery_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the payment core.
Architecture position: Kernel > DB.  May import from db/base.py.  Imports
    models/ only inside create_tables/drop_tables so metadata is populated.

Invariants enforced:
    - session_scope() commits on normal exit and rolls back on any exception,
      so a payment batch is either fully written or not written at all.
    - In-memory SQLite URLs use StaticPool so every session sees the same
      database.
    - SQLite transactions open with BEGIN IMMEDIATE, so the write lock is
      held from the first read.  SELECT ... FOR UPDATE is a no-op there.

Failure modes:
    - RuntimeError if get_engine/get_session called before
      init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bakery_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite") and (
        ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:")
    )


def _autocommit_driver(dbapi_connection, connection_record) -> None:
    # pysqlite must not emit its own BEGIN
    dbapi_connection.isolation_level = None


def _begin_immediate(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def enable_sqlite_write_locks(engine: Engine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE.

    Call before the engine hands out its first connection.  No-op for other
    dialects and for engines already set up.
    """
    if engine.dialect.name != "sqlite" or event.contains(engine, "begin", _begin_immediate):
        return
    event.listen(engine, "connect", _autocommit_driver)
    event.listen(engine, "begin", _begin_immediate)


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Second calls overwrite the first.  Returns the Engine; all subsequent
    get_engine/get_session calls use it.
    """
    global _engine, _SessionFactory

    kwargs: dict = {"echo": echo}
    if _is_memory_sqlite(database_url):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}

    _engine = create_engine(database_url, **kwargs)
    enable_sqlite_write_locks(_engine)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Usage:
        with session_scope() as session:
            session.add(entity)
            # Commits on successful exit, rolls back on exception
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all payment tables on ``engine`` (default: the module engine)."""
    from bakery_kernel.db.base import Base
    import bakery_kernel.models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from bakery_kernel.db.base import Base
    import bakery_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None
