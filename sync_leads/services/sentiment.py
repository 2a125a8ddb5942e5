"""
Per-thread sentiment tracking.

Each thread root keeps a daily_sentiment map (YYYY.MM.DD -> label) fed by the
thread's outgoing messages: the last outgoing message of a day sets that day's
label. The thread's current status is the latest outgoing message of the latest day.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection

from sync_leads.db.readers.messages import get_thread_outgoing
from sync_leads.db.writers.messages import update_thread_root
from sync_leads.models.messages import DIRECTION_OUTGOING
from sync_leads.utils.datetime import date_key

logger = structlog.get_logger(__name__)

DAY_RESPONSE_SLOTS = 10


@dataclass(frozen=True)
class LatestStatus:
    sentiment: Optional[str] = None
    status: Optional[str] = None
    timestamp: Optional[datetime] = None


def parse_daily_sentiment(value: Any) -> dict[str, str]:
    """Return a stored daily-sentiment map, or {} when missing or malformed."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("stored_daily_sentiment_malformed")
            return {}
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def merge_daily_sentiment(existing: Any, key: str, label: str) -> dict[str, str]:
    """Set one day's label, keeping every other day's entry untouched."""
    merged = parse_daily_sentiment(existing)
    merged[key] = label
    return merged


def day_responses(daily: Any, slots: int = DAY_RESPONSE_SLOTS) -> list[str]:
    """
    Render the "Day N Response" cells.

    Entries are sorted chronologically (Day 1 is the oldest day) and formatted
    "YYYY.MM.DD:Label". Missing days are empty cells. Days past the last slot are
    dropped because the sheet has a fixed column count.
    """
    entries = sorted(parse_daily_sentiment(daily).items())
    if len(entries) > slots:
        logger.warning("daily_sentiment_truncated", days=len(entries), slots=slots)
        entries = entries[:slots]
    cells = [f"{key}:{label}" for key, label in entries]
    return cells + [""] * (slots - len(cells))


class SentimentAggregator:
    def record(
        self,
        conn: Connection,
        root: Any,
        message: Any,
        sentiment: str,
        status: Optional[str],
    ) -> None:
        """
        Fold one processed message into its thread root and flag the root for sync.

        Args:
            conn: Active database connection
            root: The thread's root ClientMessage row (freshly read)
            message: The message just processed
            sentiment: The message's sentiment label
            status: The message's follow-up status / intent
        """
        if message.direction != DIRECTION_OUTGOING:
            update_thread_root(conn, root.id)
            return

        key = date_key(message.timestamp)
        daily = merge_daily_sentiment(root.daily_sentiment, key, sentiment)
        update_thread_root(conn, root.id, daily_sentiment=daily, sentiment=sentiment, status=status)
        logger.info(
            "daily_sentiment_updated",
            property_id=root.property_id,
            date_key=key,
            sentiment=sentiment,
        )

    def latest_outgoing(self, conn: Connection, property_id: str) -> LatestStatus:
        """Return sentiment/status of the latest outgoing message on the latest calendar day."""
        outgoing = get_thread_outgoing(conn, property_id)
        if not outgoing:
            return LatestStatus()

        latest_day = max(date_key(m.timestamp) for m in outgoing)
        # Rows are ascending by (timestamp, id); the last one on that day is the latest
        latest = [m for m in outgoing if date_key(m.timestamp) == latest_day][-1]
        return LatestStatus(latest.sentiment, latest.status, latest.timestamp)
