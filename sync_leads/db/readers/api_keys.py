from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from sync_leads.models.api_keys import ApiKeys


def get_latest_api_keys(conn: Connection) -> Optional[dict[str, Any]]:
    """
    Fetch the most recently updated credentials row.

    Args:
        conn (Connection): An active SQLAlchemy database connection.

    Returns:
        Optional[dict[str, Any]]: Column mapping of the newest api_keys row, or None
    """
    stmt = select(ApiKeys).order_by(ApiKeys.updated_at.desc(), ApiKeys.id.desc()).limit(1)
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None
