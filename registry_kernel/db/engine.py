"""
Module: registry_kernel.db.engine
Responsibility: Owns the process-wide engine and session factory, and the
    one transactional scope the facade runs every call in.
Architecture position: Kernel > DB.  Imports nothing from services/ or
    selectors/ except when create_tables() loads the mapped tables.

Backends:
    - PostgreSQL (production): READ COMMITTED on a QueuePool.  The atomic
      UPDATE that allocates a registration number holds the counter row
      lock until the surrounding transaction ends.
    - SQLite (development, tests): pysqlite's implicit transactions are
      switched off and every transaction opens with BEGIN IMMEDIATE, so a
      second writer waits for the database lock up front instead of failing
      halfway through.  Foreign keys are switched on per connection.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      init_engine_from_url().
    - sqlalchemy TimeoutError when the pool (pool_size + max_overflow) is
      exhausted for longer than pool_timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from registry_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

# Seconds a SQLite writer waits for the database lock
SQLITE_LOCK_TIMEOUT = 30

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # The "begin" hook below issues BEGIN itself
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _build_engine(url, echo: bool, pool_options: dict[str, Any]) -> Engine:
    if url.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            connect_args={
                "timeout": SQLITE_LOCK_TIMEOUT,
                "check_same_thread": False,
            },
        )
        _sqlite_hooks(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **pool_options,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Calling it again replaces both.  Pool options only apply to
    PostgreSQL.  Sessions do not expire loaded objects on commit, so DTOs
    can be built after the facade's transaction has ended.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    _engine = _build_engine(
        url,
        echo,
        {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": pool_pre_ping,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
        },
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "pool_size": pool_size,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open their own sessions (threads, the facade)."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One unit of work: commit on normal exit, roll back and re-raise on error.

    The session is always closed.  A registration number allocated inside
    the block is consumed only if the block commits.
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


def _metadata():
    from registry_kernel.db.base import Base

    # Importing the modules registers their tables on Base.metadata
    import registry_kernel.models  # noqa: F401
    import registry_kernel.services.sequence_service  # noqa: F401

    return Base.metadata


def create_tables() -> None:
    """Create every registry table that does not exist yet."""
    metadata = _metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(metadata.tables)})


def drop_tables() -> None:
    """Drop every registry table.  Destroys data; tests and init_db --drop only."""
    _metadata().drop_all(get_engine())
    logger.warning("tables_dropped")


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
