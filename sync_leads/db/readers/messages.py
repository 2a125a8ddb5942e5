"""
Read queries against the message store.

All functions take an active Connection and return SQLAlchemy Row objects whose
attributes mirror ClientMessage columns. Ordering is always (timestamp, id) so that
messages sharing an event timestamp fall back to storage order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Collection, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.engine import Connection, Row

from sync_leads.models.messages import DIRECTION_OUTGOING, ROOT_PARENT_ID, ClientMessage


def count_unprocessed(conn: Connection, exclude_ids: Collection[int] = ()) -> int:
    """
    Count messages still waiting to be processed.

    Args:
        conn: Active database connection
        exclude_ids: Storage ids skipped for the current tick

    Returns:
        int: Number of unprocessed messages
    """
    stmt = select(func.count()).select_from(ClientMessage).where(ClientMessage.processed.is_(False))
    if exclude_ids:
        stmt = stmt.where(ClientMessage.id.not_in(list(exclude_ids)))
    return int(conn.execute(stmt).scalar_one())


def get_next_unprocessed(
    conn: Connection, exclude_ids: Collection[int] = ()
) -> Optional[Row[Any]]:
    """Return the oldest unprocessed message by event time, or None."""
    stmt = (
        select(ClientMessage)
        .where(ClientMessage.processed.is_(False))
        .order_by(ClientMessage.timestamp.asc(), ClientMessage.id.asc())
        .limit(1)
    )
    if exclude_ids:
        stmt = stmt.where(ClientMessage.id.not_in(list(exclude_ids)))
    return conn.execute(stmt).fetchone()


def _before(timestamp: datetime, message_pk: int) -> Any:
    # Strictly earlier in (timestamp, id) order
    return or_(
        ClientMessage.timestamp < timestamp,
        and_(ClientMessage.timestamp == timestamp, ClientMessage.id < message_pk),
    )


def get_history(
    conn: Connection, counterparty: str, timestamp: datetime, message_pk: int, limit: int = 10
) -> Sequence[Row[Any]]:
    """
    Return up to `limit` processed messages for a counterparty that precede the given
    message, newest first.
    """
    stmt = (
        select(ClientMessage)
        .where(ClientMessage.counterparty == counterparty)
        .where(ClientMessage.processed.is_(True))
        .where(_before(timestamp, message_pk))
        .order_by(ClientMessage.timestamp.desc(), ClientMessage.id.desc())
        .limit(limit)
    )
    return conn.execute(stmt).fetchall()


def get_active_thread_message(
    conn: Connection, counterparty: str, timestamp: datetime
) -> Optional[Row[Any]]:
    """
    Return the most recent processed message for a counterparty that belongs to a thread.

    "Most recent" is by event timestamp; among equal timestamps the message inserted
    first wins.
    """
    stmt = (
        select(ClientMessage)
        .where(ClientMessage.counterparty == counterparty)
        .where(ClientMessage.processed.is_(True))
        .where(ClientMessage.property_id.is_not(None))
        .where(ClientMessage.timestamp <= timestamp)
        .order_by(ClientMessage.timestamp.desc(), ClientMessage.id.asc())
        .limit(1)
    )
    return conn.execute(stmt).fetchone()


def get_thread_root(conn: Connection, property_id: str) -> Optional[Row[Any]]:
    """Return the root message (parent_id = "0") of a thread, or None."""
    stmt = (
        select(ClientMessage)
        .where(ClientMessage.property_id == property_id)
        .where(ClientMessage.parent_id == ROOT_PARENT_ID)
        .order_by(ClientMessage.timestamp.asc(), ClientMessage.id.asc())
        .limit(1)
    )
    return conn.execute(stmt).fetchone()


def get_thread_messages(conn: Connection, property_id: str) -> Sequence[Row[Any]]:
    """Return every processed message of a thread in ascending event order."""
    stmt = (
        select(ClientMessage)
        .where(ClientMessage.property_id == property_id)
        .where(ClientMessage.processed.is_(True))
        .order_by(ClientMessage.timestamp.asc(), ClientMessage.id.asc())
    )
    return conn.execute(stmt).fetchall()


def get_thread_outgoing(conn: Connection, property_id: str) -> Sequence[Row[Any]]:
    """Return the processed outgoing messages of a thread in ascending event order."""
    stmt = (
        select(ClientMessage)
        .where(ClientMessage.property_id == property_id)
        .where(ClientMessage.processed.is_(True))
        .where(ClientMessage.direction == DIRECTION_OUTGOING)
        .order_by(ClientMessage.timestamp.asc(), ClientMessage.id.asc())
    )
    return conn.execute(stmt).fetchall()


def _needs_sync() -> Any:
    return and_(
        ClientMessage.processed.is_(True),
        ClientMessage.parent_id == ROOT_PARENT_ID,
        ClientMessage.property_id.is_not(None),
        or_(ClientMessage.sheet_synced.is_(False), ClientMessage.needs_sheet_sync.is_(True)),
    )


def get_roots_needing_sync(conn: Connection) -> Sequence[Row[Any]]:
    """Return thread roots that were never written to the sheet or changed since."""
    stmt = (
        select(ClientMessage)
        .where(_needs_sync())
        .order_by(ClientMessage.timestamp.asc(), ClientMessage.id.asc())
    )
    return conn.execute(stmt).fetchall()


def count_roots_needing_sync(conn: Connection) -> int:
    stmt = select(func.count()).select_from(ClientMessage).where(_needs_sync())
    return int(conn.execute(stmt).scalar_one())
