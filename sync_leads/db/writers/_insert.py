"""
Dialect-aware insert helper that ignores rows which already exist.

The transport delivers messages at least once; inserting with ON CONFLICT DO NOTHING
keyed on the transport's message id makes ingestion idempotent.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def insert_ignore_duplicates(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_column: str,
) -> int:
    """
    Insert rows, silently skipping any whose conflict_column value already exists.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., ClientMessage)
        rows: List of row dicts to insert
        conflict_column: Unique column for ON CONFLICT (e.g. "message_id")

    Returns:
        int: Number of rows actually inserted

    Example:
        >>> with engine.begin() as conn:
        ...     insert_ignore_duplicates(
        ...         conn=conn,
        ...         table=ClientMessage,
        ...         rows=[{"message_id": "false_9715@c.us_A1", ...}],
        ...         conflict_column="message_id",
        ...     )
    """
    if not rows:
        return 0

    if conn.dialect.name == "postgresql":
        stmt: Any = postgresql.insert(table).values(rows)
    elif conn.dialect.name == "sqlite":
        stmt = sqlite.insert(table).values(rows)
    else:
        raise NotImplementedError(f"Unsupported dialect: {conn.dialect.name}")

    stmt = stmt.on_conflict_do_nothing(index_elements=[conflict_column])
    result = conn.execute(stmt)
    return max(result.rowcount or 0, 0)
