"""Ingestion route: the WhatsApp transport posts raw chat messages here."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.engine import Engine

from sync_leads.config import DRY_RUN
from sync_leads.db.writers.messages import insert_messages
from sync_leads.dependencies import get_db_engine
from sync_leads.normalizers.messages import normalize_raw_messages
from sync_leads.schemas.messages import MessagesAccepted, MessagesPayload

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/messages", status_code=status.HTTP_202_ACCEPTED, response_model=MessagesAccepted)
def receive_messages(
    payload: MessagesPayload,
    request: Request,
    engine: Engine = Depends(get_db_engine),
) -> MessagesAccepted:
    """
    Store raw messages as unprocessed rows for the master loop.

    Messages already stored (same message id) are ignored, so the transport can
    safely re-send a batch.
    """
    rows = normalize_raw_messages(payload.messages)
    inserted = insert_messages(engine, rows, dry_run=DRY_RUN) if rows else 0

    logger.info(
        "messages_received",
        request_id=getattr(request.state, "request_id", None),
        received=len(payload.messages),
        valid=len(rows),
        inserted=inserted,
    )
    return MessagesAccepted(received=len(payload.messages), valid=len(rows), inserted=inserted)
