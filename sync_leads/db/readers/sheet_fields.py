from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Connection, Row

from sync_leads.models.sheet_fields import SheetField


def get_sheet_fields(conn: Connection) -> Sequence[Row[Any]]:
    """
    Fetch all configured extraction fields in display order.

    Args:
        conn (Connection): An active SQLAlchemy database connection.

    Returns:
        Sequence[Row]: sheet_fields rows ordered by `order`, then id
    """
    stmt = select(SheetField).order_by(SheetField.order.asc(), SheetField.id.asc())
    return conn.execute(stmt).fetchall()
