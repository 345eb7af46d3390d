"""
Database engine configuration.

Creates the SQLAlchemy engine for SQLite or any other URL SQLAlchemy accepts.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine

from chatrelay.core import get_logger

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Build an engine; SQLite gets its directory created and FK enforcement."""
    if database_url.startswith("sqlite"):
        db_path = database_url.removeprefix("sqlite:///") if database_url.startswith("sqlite:///") else ""
        if db_path and db_path != ":memory:":
            db_dir = Path(db_path).parent
            if not db_dir.exists():
                db_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created database directory: {db_dir}")

        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # Required for SQLite + threads
            echo=echo,
            pool_pre_ping=True,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )

    logger.info("Database engine created", data={"dialect": engine.dialect.name, "debug": echo})
    return engine


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    from chatrelay.db.base import Base
    from chatrelay.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def verify_database_connection(engine: Engine) -> bool:
    """
    Verify database connectivity with a simple query.

    Returns:
        True if connection successful, False otherwise.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
