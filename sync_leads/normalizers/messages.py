from typing import Any, Dict, List

import structlog

from sync_leads.models.messages import DIRECTION_INCOMING, DIRECTION_OUTGOING
from sync_leads.utils.datetime import from_epoch

logger = structlog.get_logger(__name__)


def normalize_raw_messages(raw_messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Map raw transport messages into client_messages rows.

    The transport forwards WhatsApp Web payloads. Ids look like
    `false_971501234567@c.us_3EB0C7...`; `fromMe` marks messages sent by the agent.

    Args:
        raw_messages: List of raw transport message dicts.

    Returns:
        List of dicts with:
            - message_id
            - counterparty (chat id, e.g. 971501234567@c.us)
            - client_name
            - direction (incoming / outgoing)
            - message
            - is_group
            - timestamp (aware UTC datetime)
    """
    rows = []

    for msg in raw_messages:
        message_id = msg.get("id")
        counterparty = msg.get("chatId") or (msg.get("to") if msg.get("fromMe") else msg.get("from"))
        if not message_id or not counterparty:
            continue  # Skip if key metadata missing

        raw_ts = msg.get("timestamp")
        if raw_ts is None:
            continue
        try:
            timestamp = from_epoch(float(raw_ts))
        except (TypeError, ValueError, OverflowError):
            logger.warning("message_timestamp_invalid", message_id=message_id, timestamp=raw_ts)
            continue

        rows.append(
            {
                "message_id": str(message_id),
                "counterparty": str(counterparty),
                "client_name": msg.get("chatName") or msg.get("notifyName"),
                "direction": DIRECTION_OUTGOING if msg.get("fromMe") else DIRECTION_INCOMING,
                "message": msg.get("body") or "",
                "is_group": bool(msg.get("isGroup", False)),
                "timestamp": timestamp,
            }
        )

    if len(rows) != len(raw_messages):
        logger.info("raw_messages_skipped", skipped=len(raw_messages) - len(rows))

    return rows
