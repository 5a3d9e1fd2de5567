"""
Database connection management with connection pooling.

This module provides the engine, session factory and declarative base
shared by every service, plus the insert-or-ignore helper the identity
and membership services use to create rows without a check-then-insert race.
"""
from typing import Any, Dict, Iterable

from sqlalchemy import create_engine, event, insert, text
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    Server databases get a bounded connection pool; an in-memory SQLite
    database is pinned to a single shared connection so every session sees
    the same data.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,  # Number of connections to maintain
        max_overflow=settings.DB_MAX_OVERFLOW,  # Additional connections beyond pool_size
        pool_timeout=settings.DB_POOL_TIMEOUT,  # Seconds to wait for connection
        pool_recycle=settings.DB_POOL_RECYCLE,  # Recycle connections after this many seconds
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


engine = build_engine(DATABASE_URL, echo=settings.DEBUG)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading issues
)

Base = declarative_base()


@event.listens_for(engine, "connect")
def on_connect(dbapi_conn, connection_record):
    """Log new pool connections."""
    logger.debug("New database connection established")


def get_db() -> Session:
    """
    Dependency for FastAPI to get database session.

    The session is committed when the request finishes cleanly and rolled
    back otherwise; the connection always goes back to the pool.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def get_db_sync() -> Session:
    """
    Synchronous database session getter for use in scripts.

    Note: This does NOT auto-commit or auto-rollback.
    Caller must manage transactions explicitly.
    """
    return SessionLocal()


def check_db_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


def insert_ignore(
    db: Session,
    table,
    values: Dict[str, Any],
    index_elements: Iterable[str],
) -> bool:
    """
    Insert one row unless it collides with a unique key.

    Runs as a single statement so concurrent first-time callers cannot
    produce duplicates or duplicate-key failures.

    Returns:
        True if a row was inserted, False if it already existed.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=list(index_elements)
        )
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=list(index_elements)
        )
    elif dialect in ("mysql", "mariadb"):
        stmt = mysql_insert(table).values(**values).prefix_with("IGNORE")
    else:
        stmt = insert(table).values(**values)
    result = db.execute(stmt)
    return (result.rowcount or 0) > 0
