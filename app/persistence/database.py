"""Database connection and session management.

The engine and session factory are module-level singletons created by
init_database() at startup and released by close_database().
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.logging import get_logger

from .exceptions import DatabaseConnectionError, DataIntegrityError, PersistenceError

_engine: Engine | None = None
_session_factory: sessionmaker | None = None

logger = get_logger(__name__, component="database")


def init_database(database_url: str) -> None:
    """Initialize the engine, validate the connection and create missing tables.

    SQLite gets foreign keys and WAL enabled. In-memory SQLite shares a single
    connection (StaticPool) so background run threads see the same database.

    Args:
        database_url: SQLAlchemy URL (e.g. "sqlite:///./data/job_recommender.db")

    Raises:
        DatabaseConnectionError: If initialization fails
    """
    global _engine, _session_factory

    if not database_url or not isinstance(database_url, str):
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    try:
        url = make_url(database_url)
    except ArgumentError as e:
        raise DatabaseConnectionError(f"Invalid database URL: {e}") from e

    safe_url = url.render_as_string(hide_password=True)
    logger.info(
        "Initializing database",
        extra={"event": "database.initializing", "database_url": safe_url},
    )

    is_sqlite = url.get_backend_name() == "sqlite"
    in_memory = is_sqlite and url.database in (None, "", ":memory:")

    try:
        if is_sqlite and not in_memory:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        engine_kwargs = {"pool_pre_ping": True}
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if in_memory:
            engine_kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **engine_kwargs)
        if is_sqlite:
            _configure_sqlite(engine, wal=not in_memory)

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        from .schema import create_schema

        create_schema(engine)
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            f"Failed to initialize database: {e}",
            extra={"event": "database.init_failed", "database_url": safe_url},
            exc_info=True,
        )
        raise DatabaseConnectionError(f"Failed to initialize database: {e}") from e

    _engine = engine
    _session_factory = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)

    logger.info(
        "Database initialized",
        extra={"event": "database.initialised", "database_url": safe_url},
    )


def _configure_sqlite(engine: Engine, wal: bool) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Provide a session scoped to one transaction.

    Commits on normal exit, rolls back if the block raises, always closes.

    Raises:
        DatabaseConnectionError: If init_database() has not been called
        DataIntegrityError: If the commit violates a constraint
        PersistenceError: If the commit fails for another database reason

    Example:
        >>> with get_session() as session:
        ...     job = JobRepository(session).get_by_key("abc123")
    """
    if _session_factory is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_session()"
        )

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(
            f"Database session rolled back: {e}",
            extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
        )
        if isinstance(e, IntegrityError):
            raise DataIntegrityError(f"Failed to commit transaction: {e}") from e
        if isinstance(e, SQLAlchemyError):
            raise PersistenceError(f"Failed to commit transaction: {e}") from e
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    """Return the engine created by init_database()."""
    if _engine is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_engine()"
        )
    return _engine


def close_database() -> None:
    """Dispose of pooled connections; safe to call when not initialized."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed", extra={"event": "database.closed"})
