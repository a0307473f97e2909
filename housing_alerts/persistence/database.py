"""Engine and session lifecycle for the shared database.

The web application writes to the same database, so sessions are short and
every job-side write is either a duplicate-checked insert or an idempotent
update. Blocking calls on these sessions are made from worker threads via
``asyncio.to_thread``.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from housing_alerts.logging import get_logger

from .exceptions import DatabaseConnectionError

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None

logger = get_logger(__name__, component="database")


def init_database(database_url: str) -> None:
    """Create the engine, validate the connection and ensure the schema.

    Call once at process start. For ``sqlite:///:memory:`` a single shared
    connection is used so that worker threads see the same database.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///./data/housing_alerts.db``

    Raises:
        DatabaseConnectionError: If the URL is empty or the database is unusable
    """
    global _engine, _session_factory

    if not database_url or not isinstance(database_url, str):
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    logger.info(
        "Initializing database",
        extra={"event": "database.initializing", "database_url": _redact_url(database_url)},
    )

    is_sqlite = database_url.startswith("sqlite")
    in_memory = is_sqlite and (":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"))

    try:
        if is_sqlite and not in_memory:
            db_file = Path(database_url.split("sqlite:///", 1)[-1])
            if not db_file.parent.exists():
                logger.info(f"Creating database directory: {db_file.parent}")
                db_file.parent.mkdir(parents=True, exist_ok=True)

        engine_kwargs = {"pool_pre_ping": True, "future": True}
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if in_memory:
            engine_kwargs["poolclass"] = StaticPool

        engine = create_engine(database_url, **engine_kwargs)
        if is_sqlite:
            _configure_sqlite(engine, wal=not in_memory)

        _validate_connection(engine)

        from .schema import create_schema

        create_schema(engine)
    except DatabaseConnectionError:
        raise
    except Exception as e:
        error_msg = f"Failed to initialize database: {e}"
        logger.error(error_msg, exc_info=True, extra={"event": "database.init_failed"})
        raise DatabaseConnectionError(error_msg) from e

    _engine = engine
    _session_factory = sessionmaker(
        bind=engine,
        autoflush=True,
        expire_on_commit=False,
        future=True,
    )

    logger.info(
        "Database initialized",
        extra={"event": "database.initialized", "database_url": _redact_url(database_url)},
    )


def _configure_sqlite(engine: Engine, wal: bool) -> None:
    """Enable foreign keys and WAL, and let SQLAlchemy own BEGIN.

    pysqlite's implicit transaction handling breaks SAVEPOINT, which the
    insert-if-absent repositories rely on, so BEGIN is emitted explicitly.
    """

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _validate_connection(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except Exception as e:
        raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e


def _redact_url(url: str) -> str:
    """Hide the password part of a server database URL."""
    if url.startswith("sqlite") or "@" not in url:
        return url
    credentials, _, location = url.rpartition("@")
    scheme, _, userinfo = credentials.partition("://")
    user = userinfo.split(":", 1)[0]
    return f"{scheme}://{user}:***@{location}"


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error.

    Raises:
        DatabaseConnectionError: If ``init_database`` has not been called

    Example:
        >>> with get_session() as session:
        ...     ListingRepository(session).count_active()
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
        raise
    finally:
        session.close()


def check_connection() -> bool:
    """Return True if ``SELECT 1`` succeeds on the current engine."""
    try:
        _validate_connection(get_engine())
    except DatabaseConnectionError as e:
        logger.warning(str(e), extra={"event": "database.ping_failed"})
        return False
    return True


def get_engine() -> Engine:
    """Return the engine.

    Raises:
        DatabaseConnectionError: If ``init_database`` has not been called
    """
    if _engine is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_engine()"
        )
    return _engine


def close_database() -> None:
    """Dispose of the engine; safe to call more than once."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed", extra={"event": "database.closed"})
