"""
FastAPI dependency injection providers.

Routes receive the database engine through Depends(get_db_engine) so tests can
override it with app.dependency_overrides and an in-memory SQLite engine.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from sqlalchemy.engine import Engine

from sync_leads.db.engine import create_db_engine


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Build the process-wide engine on first use."""
    return create_db_engine()


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the database engine for route handlers.

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
        >>> client = TestClient(app)
    """
    yield get_engine()
