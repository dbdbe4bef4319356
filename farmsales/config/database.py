# farmsales/config/database.py
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
import sqlite3
import logging
from typing import Generator

from .settings import get_settings
from ..core.exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across sessions."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=10,
        max_overflow=20,
        echo=echo,
        connect_args={"connect_timeout": 30},
    )


# Database engine configuration
engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine
)


# Database session dependency
def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Creates a new database session for each request.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


# SQLite-specific configuration
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Database health check
def check_database_health(bind: Engine = None) -> bool:
    """Check if database connection is healthy."""
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# Database initialization
def init_database(bind: Engine = None):
    """Initialize database with tables."""
    from ..models.base import Base
    from .. import models  # noqa: F401  registers every mapped class

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


# Database cleanup
def cleanup_database():
    """Clean up database connections."""
    try:
        engine.dispose()
        logger.info("Database connections cleaned up")
    except Exception as e:
        logger.error(f"Database cleanup failed: {e}")


# Transaction context manager
class DatabaseTransaction:
    """
    Context manager for database transactions.

    Commits on success and rolls back on any exception. A version-counter
    mismatch (``StaleDataError``) or a duplicate on one of ``conflict_columns``
    means another writer got there first and is re-raised as
    ``ConcurrentModificationError``; the caller retries from a fresh read.
    """

    def __init__(self, db: Session, resource: str = "Order", conflict_columns=("receipt_no", "display_id")):
        self.db = db
        self.resource = resource
        self.conflict_columns = conflict_columns

    def __enter__(self):
        return self.db

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.db.rollback()
            self._raise_if_conflict(exc_val)
            return False

        try:
            self.db.commit()
        except (StaleDataError, IntegrityError) as e:
            self.db.rollback()
            self._raise_if_conflict(e)
            raise
        return False

    def _raise_if_conflict(self, exc):
        if isinstance(exc, StaleDataError) or (
            isinstance(exc, IntegrityError)
            and any(column in str(exc.orig) for column in self.conflict_columns)
        ):
            logger.warning(f"Concurrent modification of {self.resource}: {exc}")
            raise ConcurrentModificationError(self.resource) from exc


# Export commonly used objects
__all__ = [
    "engine",
    "build_engine",
    "SessionLocal",
    "get_db",
    "init_database",
    "cleanup_database",
    "check_database_health",
    "DatabaseTransaction",
]
