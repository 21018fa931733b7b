"""
Database connection and session management for Timber Ledger.

This module provides:
- Database engine creation and configuration
- Session factory for database operations
- Database initialization (create tables)
- WAL mode configuration and foreign key enforcement for SQLite
- The default record store used by the command line tools

The inventory core never reaches for the globals defined here; it receives
a RecordStore explicitly. ``get_default_store()`` is the one place where the
configured database is turned into a store.
"""

from typing import Optional
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

# Configure logging
logger = logging.getLogger(__name__)

# Global engine and session factory, built lazily from Config
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on connection.

    Enables foreign key constraints and WAL mode. Non-SQLite drivers are
    left untouched.
    """
    module = type(dbapi_connection).__module__
    if "sqlite" not in module:
        return

    cursor = dbapi_connection.cursor()
    # Enable foreign key constraints (the ledger and batch links rely on them)
    cursor.execute("PRAGMA foreign_keys=ON")
    # WAL lets readers keep going while a production run commits
    cursor.execute("PRAGMA journal_mode=WAL")
    # Safe with WAL and avoids an fsync on every commit
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        Configured SQLAlchemy Engine
    """
    config = get_config()
    if database_url is None:
        # Fall back to the configured file (or TIMBER_LEDGER_DATABASE_URL)
        database_url = config.database_url
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            config.ensure_directories()

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        # In-memory databases (testing): every connection would otherwise get
        # its own empty database, so StaticPool keeps a single shared one
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    # File-based SQLite: wait up to db_timeout seconds on a locked database
    # instead of failing at once while another writer commits
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": config.db_timeout},
        )
    # Server databases: drop stale pooled connections before use
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Initialize the database by creating all tables.

    Safe to call multiple times - existing tables won't be recreated.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Initializing database tables")

    # Registers every model (and the immutability guards) with Base
    from .. import models  # noqa: F401

    # Create all tables (existing ones are left alone)
    Base.metadata.create_all(engine)

    logger.info("Database tables initialized successfully")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the global database engine.

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
    """
    Get the global session factory.

    Returns:
        Session factory (sessionmaker)
    """
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    return _SessionFactory


def verify_database() -> bool:
    """
    Verify that the database is accessible and has the core tables.

    Returns:
        True if database is valid, False otherwise
    """
    try:
        tables = inspect(get_engine()).get_table_names()
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False
    # The core tables every operation touches
    return all(table in tables for table in ("logs", "inventory_ledger", "product_types"))


def reset_database(confirm: bool = False) -> None:
    """
    Drop all tables and recreate the database.

    WARNING: This will delete all data!

    Args:
        confirm: Must be True to actually reset. Safety check.

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")

    engine = get_engine()
    from .. import models  # noqa: F401

    # Drop all tables
    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")

    # Recreate tables
    Base.metadata.create_all(engine)
    logger.info("Tables recreated")


def close_connections() -> None:
    """Dispose of the global engine and forget the session factory."""
    global _engine, _SessionFactory

    _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")


def get_default_store():
    """
    Build a record store over the configured database.

    Creates the tables on first use so command line tools work against a
    fresh database file.
    """
    from .record_store import SqlAlchemyRecordStore

    # Create tables on first use so a fresh database file works
    init_database(get_engine())
    return SqlAlchemyRecordStore(
        get_session_factory(), max_retries=get_config().transaction_retries
    )
