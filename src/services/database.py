"""
Database connection and session management for Restaurant POS.

This module provides:
- Database engine creation (file-backed or in-memory SQLite)
- Session factory and the transactional session_scope() every
  application service runs inside
- Table creation, verification and reset
- SQLite pragmas (foreign keys, WAL journal)

Stock-affecting operations (checkout, purchases, production, waste) each
run in ONE session_scope(), so a failure anywhere rolls back every stock
change made by that operation.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, close_all_sessions, sessionmaker
from sqlalchemy.pool import StaticPool

from src.models.base import Base
from src.services.logging_utils import get_service_logger
from src.utils.config import get_config, get_database_url

logger = get_service_logger(__name__)

# Tables whose presence means the schema has been created
REQUIRED_TABLES = ("ingredients", "prep_tasks", "menu_items", "recipe_lines", "sales")

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on every new connection.

    Foreign keys are off by default in SQLite; WAL lets reports read while
    a checkout is writing.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url is None:
        database_url = get_database_url()

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        # One shared connection, otherwise each session sees an empty database
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create all tables that don't exist yet. Safe to call repeatedly.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    if engine is None:
        engine = get_engine()

    # Register every model with Base before create_all()
    import src.models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database tables initialized")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the global database engine, creating it on first use.

    Args:
        force_recreate: If True, recreate the engine even if one exists

    Returns:
        Database engine
    """
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """Get the global session factory."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """
    Create a new database session.

    The caller owns the session and must commit/rollback/close it.
    Prefer session_scope().
    """
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Provide a transactional scope for database operations.

    Commits on success, rolls back on any exception and always closes.

    Yields:
        Database session

    Example:
        with session_scope() as session:
            session.add(Ingredient(name="Flour", usage_unit="gram"))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def database_exists() -> bool:
    """Check if the database file exists."""
    return get_config().database_exists()


def verify_database() -> bool:
    """
    Verify that the database is reachable and has the required tables.

    Returns:
        True if database is valid, False otherwise
    """
    try:
        tables = inspect(get_engine()).get_table_names()
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False
    return all(table in tables for table in REQUIRED_TABLES)


def reset_database(confirm: bool = False) -> None:
    """
    Drop all tables and recreate them. Deletes all data.

    Args:
        confirm: Must be True to actually reset

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")

    engine = get_engine()
    import src.models  # noqa: F401

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Tables dropped and recreated")


def close_connections() -> None:
    """Close all sessions and dispose of the engine."""
    global _engine, _SessionFactory

    if _SessionFactory is not None:
        close_all_sessions()
        _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """
    Initialize the application database on startup.

    Creates the database file and tables if they don't exist.
    """
    config = get_config()

    if config.is_testing:
        logger.info("Using in-memory database")
    elif not config.database_exists():
        logger.info(f"Creating new database at: {config.database_path}")
    else:
        logger.info(f"Using existing database at: {config.database_path}")

    init_database(get_engine())

    if verify_database():
        logger.info("Database initialized and verified successfully")
    else:
        logger.warning("Database verification failed - tables may not exist")
