"""
Client sheet sync pass.

Every thread root that was never written, or was flagged by the drain since its
last write, is rendered as one Client sheet row from the thread's merged property
record and its latest outgoing sentiment. Rows without a stored sheet_row_index are
appended (and the returned index stored); rows with one are updated in place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from sync_leads.config import DRY_RUN
from sync_leads.db.readers.messages import count_roots_needing_sync, get_roots_needing_sync
from sync_leads.db.writers.messages import mark_root_synced
from sync_leads.errors import ConfigurationError
from sync_leads.metrics import threads_pending_sync
from sync_leads.services.property_merger import PropertyMerger, collapse
from sync_leads.services.sentiment import LatestStatus, SentimentAggregator, day_responses
from sync_leads.sheets.batcher import RowWrite, SheetBatcher
from sync_leads.sheets.client import GoogleSheetsSink
from sync_leads.utils.datetime import as_utc, utc_now

logger = structlog.get_logger(__name__)

CUSTOMER_SEQUENCE = "CLT"
DEFAULT_CLASSIFICATION = "Others"

CLASSIFICATION_MAP: dict[str, str] = {
    "REC": "Agent Commercial",
    "RER": "Agent Residential",
    "RESL": "Residential Client - Lease",
    "RESP": "Residential Client - Purchase",
    "RET": "Retail Client - Purchase",
    "RST": "Restaurant Client",
    "SLN": "Saloon Client",
    "BSNL": "Beauty Saloon Client",
    "SPMKT": "Super Market client",
    "PHA": "Pharma Client",
    "OPT": "Optical",
    "LND": "Laundry",
    "PET": "Pet Care",
    "STD": "Studio",
    "FLW": "Flower",
    "NRS": "Nursery",
    "CAF": "Cafe",
    "BAK": "Bakery",
    "CLN": "Clinic",
    "OTH": "Others",
}

# Checked in this order; the first whole-word match wins
MIDDLE_CODES = tuple(CLASSIFICATION_MAP)

_MOBILE_FROM_MESSAGE_ID = re.compile(r"_(\d+)@c\.us")
_MOBILE_FROM_COUNTERPARTY = re.compile(r"^(\d+)@")
_TRAILING_SEQUENCE = re.compile(r"CLT\d+$")


def parse_client_name(full_name: Optional[str]) -> tuple[str, str]:
    """
    Split a contact name like "Ravi Kumar RESL CLT0042" into (middle code, individual name).

    Example:
        >>> parse_client_name("Ravi Kumar RESL CLT0042")
        ('RESL', 'Ravi Kumar')
        >>> parse_client_name("Anita CLT0007")
        ('', 'Anita')
    """
    full_name = full_name or ""
    for code in MIDDLE_CODES:
        if re.search(rf"\b{code}\b", full_name):
            return code, full_name.split(code, 1)[0].strip()
    return "", _TRAILING_SEQUENCE.sub("", full_name).strip()


def extract_mobile(message_id: Optional[str], counterparty: Optional[str] = None) -> str:
    match = _MOBILE_FROM_MESSAGE_ID.search(message_id or "")
    if match:
        return match.group(1)
    match = _MOBILE_FROM_COUNTERPARTY.match(counterparty or "")
    return match.group(1) if match else ""


def format_cell(value: Any) -> str:
    """Render a merged field value as sheet text (1500000.0 -> "1500000")."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ", ".join(format_cell(v) for v in value)
    return str(value)


def build_client_row(root: Any, merged: dict[str, Any], latest: LatestStatus) -> list[str]:
    """Render one thread as a Client sheet row (header order)."""
    middle, individual_name = parse_client_name(root.client_name)
    return [
        as_utc(root.timestamp).strftime("%m/%d/%Y"),
        CUSTOMER_SEQUENCE,
        middle,
        CLASSIFICATION_MAP.get(middle, DEFAULT_CLASSIFICATION),
        format_cell(merged.get("property_name")),
        extract_mobile(root.message_id, root.counterparty),
        format_cell(merged.get("price")),
        format_cell(merged.get("size_sqft")),
        format_cell(merged.get("location")),
        latest.sentiment or "",
        individual_name,
        "",
        latest.status or "",
    ] + day_responses(root.daily_sentiment)


@dataclass
class SyncSummary:
    written: int = 0
    failed: int = 0
    skipped: int = 0


class ClientSheetSync:
    def __init__(
        self,
        engine: Engine,
        batcher: SheetBatcher,
        merger: Optional[PropertyMerger] = None,
        aggregator: Optional[SentimentAggregator] = None,
        dry_run: bool = DRY_RUN,
    ):
        self.engine = engine
        self.batcher = batcher
        self.merger = merger or PropertyMerger()
        self.aggregator = aggregator or SentimentAggregator()
        self.dry_run = dry_run

    def sync(self) -> SyncSummary:
        """
        Write every thread root that needs it, at most one sheet write per thread.

        A thread whose write fails keeps its needs-sync flag and is retried on the
        next pass.

        Raises:
            ConfigurationError: If sheet credentials are missing.
        """
        summary = SyncSummary()
        with self.engine.connect() as conn:
            roots = get_roots_needing_sync(conn)

        if not roots:
            threads_pending_sync.set(0)
            return summary

        submitted = []
        for root in roots:
            try:
                with self.engine.connect() as conn:
                    merged = collapse(self.merger.merge(conn, root.property_id))
                    latest = self.aggregator.latest_outgoing(conn, root.property_id)
            except Exception as e:
                logger.error("client_row_build_failed", property_id=root.property_id, error=str(e))
                summary.skipped += 1
                continue

            values = build_client_row(root, merged, latest)
            if self.dry_run:
                logger.info("client_row_dry_run", property_id=root.property_id, values=values)
                summary.skipped += 1
                continue

            write = RowWrite(values=values, row_index=root.sheet_row_index, key=root.property_id)
            submitted.append((root, latest, self.batcher.submit(write)))

        self.batcher.flush()

        for root, latest, future in submitted:
            try:
                row_index = future.result()
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("client_row_write_failed", property_id=root.property_id, error=str(e))
                summary.failed += 1
                continue

            with self.engine.begin() as conn:
                mark_root_synced(
                    conn,
                    root.id,
                    row_index=row_index,
                    synced_at=utc_now(),
                    sentiment=latest.sentiment,
                    status=latest.status,
                )
            summary.written += 1
            logger.info(
                "client_row_synced",
                property_id=root.property_id,
                row_index=row_index,
                appended=root.sheet_row_index is None,
            )

        with self.engine.connect() as conn:
            threads_pending_sync.set(count_roots_needing_sync(conn))

        logger.info(
            "client_sheet_sync_completed",
            written=summary.written,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary


def sync_client_sheet_headers(sink: GoogleSheetsSink) -> None:
    """Force the Client sheet header row to match the current column layout."""
    sink.ensure_headers(force=True)
    logger.info("client_sheet_headers_synced", sheet_name=sink.sheet_name)
