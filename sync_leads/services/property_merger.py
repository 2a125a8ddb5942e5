"""
Fold a thread's per-message extractions into its canonical property record array.

The merge is always recomputed from the stored messages rather than updated in
place, so re-running it after a crash or retry gives the same answer.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

import structlog
from sqlalchemy.engine import Connection

from sync_leads.db.readers.messages import get_thread_messages, get_thread_root
from sync_leads.errors import ThreadInvariantError
from sync_leads.schemas.classification import unwrap_record

logger = structlog.get_logger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _as_records(extraction: Any) -> list[dict[str, Any]]:
    """Normalize a stored extraction (list, dict or JSON string) into a list of dicts."""
    if isinstance(extraction, str):
        try:
            extraction = json.loads(extraction)
        except ValueError:
            logger.warning("stored_extraction_malformed")
            return []
    if extraction is None:
        return []
    items = extraction if isinstance(extraction, list) else [extraction]
    return [r for r in (unwrap_record(item) for item in items) if isinstance(r, dict)]


def fold_extractions(extractions: Iterable[Any]) -> list[dict[str, Any]]:
    """
    Fold extractions in the order given.

    Record i of each message merges into slot i; within a slot the last non-empty
    value of each field wins and empty values never overwrite.
    """
    slots: list[dict[str, Any]] = []
    for extraction in extractions:
        for index, record in enumerate(_as_records(extraction)):
            if index == len(slots):
                slots.append({})
            for key, value in record.items():
                if not _is_empty(value):
                    slots[index][key] = value
    return slots


def collapse(records: list[dict[str, Any]]) -> dict[str, Any]:
    """Fold every slot into a single mapping (used for the one-row-per-thread sheet)."""
    return fold_extractions([record] for record in records)[0] if records else {}


class PropertyMerger:
    def merge(self, conn: Connection, property_id: str) -> list[dict[str, Any]]:
        """
        Recompute the merged record array for a thread.

        Args:
            conn: Active database connection
            property_id: Thread id

        Returns:
            list[dict]: merged records, each stamped with propertyId and parentId
                (the root message's id)

        Raises:
            ThreadInvariantError: If the thread has no root message.
        """
        root = get_thread_root(conn, property_id)
        if root is None:
            raise ThreadInvariantError(property_id, "root message not found")

        messages = get_thread_messages(conn, property_id)
        merged = fold_extractions(m.extraction for m in messages)
        for record in merged:
            record["propertyId"] = property_id
            record["parentId"] = root.message_id
        return merged
