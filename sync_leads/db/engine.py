"""
SQLAlchemy engine construction with production-ready connection pooling.

The engine is built explicitly and passed into the services that need it, so tests
can hand in an in-memory SQLite engine instead.
"""

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from sync_leads.config import DATABASE_URL
from sync_leads.errors import ConfigurationError


def create_db_engine(url: Optional[str] = None) -> Engine:
    """
    Create the database engine.

    Args:
        url: SQLAlchemy database URL. Defaults to DATABASE_URL from the environment.

    Returns:
        Engine: configured SQLAlchemy engine

    Raises:
        ConfigurationError: If no database URL is configured.
    """
    url = url or DATABASE_URL
    if not url:
        raise ConfigurationError("DATABASE_URL must be set in the environment")

    if url.startswith("sqlite"):
        return create_engine(url, future=True)

    return create_engine(
        url,
        future=True,
        # Connection pool settings
        pool_size=5,  # One logical worker plus API requests
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using (detect stale connections)
        pool_recycle=3600,  # Recycle connections after 1 hour
        echo=False,
    )


def check_engine_health(engine: Engine) -> bool:
    """
    Check if database engine is healthy and connections are working.

    Used by the /ready endpoint.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
