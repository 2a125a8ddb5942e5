"""
Write operations against the message store.

Ingestion is append-only. Every other function here is called by the master loop,
which is the only writer once a message exists.
"""

import json
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.engine import Connection, Engine

from sync_leads.config import DEBUG
from sync_leads.db.writers._insert import insert_ignore_duplicates
from sync_leads.models.messages import ClientMessage

logger = structlog.get_logger(__name__)


def insert_messages(engine: Engine, data: list[dict[str, Any]], dry_run: bool = False) -> int:
    """
    Append normalized transport messages to the store.
    Messages whose message_id already exists are ignored.

    Args:
        engine: SQLAlchemy Engine
        data: List of normalized message dicts
        dry_run: If True, skip DB writes and log only

    Returns:
        int: Number of new messages stored
    """
    if dry_run:
        logger.info("dry_run_insert_messages", count=len(data))
        return 0

    if not data:
        logger.info("no_messages_to_insert")
        return 0

    if DEBUG:
        logger.debug("sample_message_to_insert", sample=json.dumps(data[0], default=str))

    with engine.begin() as conn:
        inserted = insert_ignore_duplicates(
            conn=conn,
            table=ClientMessage,
            rows=data,
            conflict_column="message_id",
        )

    logger.info("messages_inserted", received=len(data), inserted=inserted)
    return inserted


def mark_processed(
    conn: Connection,
    message_pk: int,
    extraction: list[dict[str, Any]],
    property_id: Optional[str],
    parent_id: Optional[str],
    sentiment: str,
    intent: Optional[str],
    status: Optional[str],
) -> None:
    """Flip a message to processed and store its derived fields."""
    conn.execute(
        update(ClientMessage)
        .where(ClientMessage.id == message_pk)
        .where(ClientMessage.processed.is_(False))
        .values(
            processed=True,
            extraction=extraction,
            property_id=property_id,
            parent_id=parent_id,
            sentiment=sentiment,
            intent=intent,
            status=status,
        )
    )


def set_merged_property(conn: Connection, message_pk: int, merged: list[dict[str, Any]]) -> None:
    """Store the thread's merged record array on a message."""
    conn.execute(
        update(ClientMessage).where(ClientMessage.id == message_pk).values(property=merged)
    )


def update_thread_root(
    conn: Connection,
    root_pk: int,
    daily_sentiment: Optional[dict[str, str]] = None,
    sentiment: Optional[str] = None,
    status: Optional[str] = None,
) -> None:
    """
    Update a thread root's aggregate state and flag it for the next sheet sync.

    Arguments left as None keep their stored value.
    """
    values: dict[str, Any] = {"needs_sheet_sync": True}
    if daily_sentiment is not None:
        values["daily_sentiment"] = daily_sentiment
    if sentiment is not None:
        values["latest_sentiment"] = sentiment
    if status is not None:
        values["latest_status"] = status

    conn.execute(update(ClientMessage).where(ClientMessage.id == root_pk).values(**values))


def mark_root_synced(
    conn: Connection,
    root_pk: int,
    row_index: int,
    synced_at: datetime,
    sentiment: Optional[str] = None,
    status: Optional[str] = None,
) -> None:
    """Record a successful sheet write for a thread root."""
    values: dict[str, Any] = {
        "sheet_synced": True,
        "needs_sheet_sync": False,
        "last_sheet_synced_at": synced_at,
        "sheet_row_index": row_index,
    }
    if sentiment is not None:
        values["latest_sentiment"] = sentiment
    if status is not None:
        values["latest_status"] = status

    conn.execute(update(ClientMessage).where(ClientMessage.id == root_pk).values(**values))
