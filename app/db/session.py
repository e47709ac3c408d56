"""Database session management for the attestation gateway.

This module provides SQLAlchemy engine and session management:
- engine: The SQLAlchemy engine connected to the database
- SessionLocal: Session factory for creating database sessions
- init_database(): create tables at startup

PostgreSQL in production with connection pooling; SQLite fallback for
local development.
"""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.core.config import DATABASE_URL

log = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        from sqlalchemy.pool import StaticPool

        return {
            "echo": False,
            "pool_pre_ping": True,
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "echo": False,
        "pool_pre_ping": True,      # Verify connections before use
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 1800,       # Recycle connections every 30 min
    }


if DATABASE_URL.startswith("sqlite"):
    log.info("Using SQLite database (local development mode)")
else:
    log.info("Using PostgreSQL database (production mode)")

engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Wait up to 5s for SQLite locks instead of failing immediately."""
    if DATABASE_URL.startswith("sqlite"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


def init_database() -> None:
    """Create the zkpass and selfcheck tables if they do not exist."""
    from app.db.models import Base

    log.info(f"Initializing database at {DATABASE_URL.split('@')[-1] if '@' in DATABASE_URL else DATABASE_URL}")

    # Upgrade tables created from the original DDL before create_all
    from app.db.migrations.legacy_schema import run_migrations
    run_migrations(engine)

    Base.metadata.create_all(bind=engine)
    log.info("Database tables created successfully")
