"""
Module: balance_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the entire system.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, or outer layers
    (except for create_tables/drop_tables which import models).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit row-level locking
      (SELECT ... FOR UPDATE on the period row) where a write depends on a
      prior read; unique constraints are the final arbiter for period dates
      and payee names.
    - SQLite connections enforce foreign keys (PRAGMA foreign_keys=ON) and
      emit their own BEGIN so SAVEPOINTs nest correctly inside a transaction.
    - session_scope() commits on success and rolls back on ANY exception.
      Store failures are re-raised as InfrastructureError subclasses so the
      calling layer can tell them apart from domain errors.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - StoreUnavailableError if the store cannot be reached.
    - TransactionAbortedError if the store aborts the transaction.
    - StoreOperationError if the store rejects a statement outright.
"""

import atexit
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from balance_kernel.exceptions import (
    InfrastructureError,
    StoreOperationError,
    StoreUnavailableError,
    TransactionAbortedError,
)
from balance_kernel.logging_config import get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_listeners(engine: Engine) -> None:
    """Foreign keys on, and BEGIN emitted by SQLAlchemy instead of pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own transaction handling so SAVEPOINT works
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for the given URL without touching module state.

    SQLite in-memory databases share one connection (StaticPool) so every
    session sees the same data; file databases use the default pool.
    PostgreSQL uses a QueuePool at READ COMMITTED.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        kwargs: dict = {
            "echo": echo,
            "connect_args": {"check_same_thread": False},
        }
        if in_memory:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _install_sqlite_listeners(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Preconditions: database_url is a valid SQLAlchemy URL (sqlite or
        postgresql+psycopg).  A second call replaces the first engine.
    Postconditions: All subsequent get_engine/get_session calls use it.

    Args:
        database_url: Connection URL.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
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


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def translate_store_error(exc: DBAPIError) -> InfrastructureError:
    """
    Map a non-integrity DBAPI failure to the kernel's infrastructure errors.

    Integrity violations are domain conflicts and are translated by the
    services that know which constraint they touched, never here.  Only
    OperationalError (deadlock, serialization failure, lost connection) is
    transient; DataError, ProgrammingError and the rest would fail the same
    way on retry.
    """
    detail = str(exc.orig) if exc.orig is not None else str(exc)
    if exc.connection_invalidated:
        return StoreUnavailableError(detail)
    if isinstance(exc, OperationalError):
        return TransactionAbortedError(detail)
    return StoreOperationError(detail)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Preconditions: Engine must be initialized, or a session_factory given.
    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  Store failures
        are re-raised as InfrastructureError; everything else is re-raised
        unchanged.

    Usage:
        with session_scope() as session:
            PaymentPeriodService(session).create_payment_period(...)
            # Commits on successful exit, rolls back on exception
    """
    session = session_factory() if session_factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except DBAPIError as exc:
        session.rollback()
        if isinstance(exc, IntegrityError):
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        translated = translate_store_error(exc)
        logger.warning(
            "transaction_aborted",
            extra={"error_code": translated.code, "detail": translated.detail},
        )
        raise translated from exc
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined in the models.

    Preconditions: Engine must be initialized, or one passed in.
    Postconditions: All tables exist in the database (idempotent).
    """
    from balance_kernel.db.base import Base
    import balance_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    target = engine or get_engine()
    Base.metadata.create_all(target)
    logger.info(
        "tables_created",
        extra={"tables": sorted(Base.metadata.tables)},
    )


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from balance_kernel.db.base import Base
    import balance_kernel.models  # noqa: F401

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


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)

