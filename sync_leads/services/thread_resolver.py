"""Assign each classified message to a property thread."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.engine import Connection

from sync_leads.db.readers.messages import get_active_thread_message, get_thread_root
from sync_leads.errors import ThreadInvariantError
from sync_leads.metrics import thread_decisions
from sync_leads.models.messages import ROOT_PARENT_ID
from sync_leads.schemas.classification import ClassificationResult

logger = structlog.get_logger(__name__)

DECISION_NEW = "new"
DECISION_ATTACHED = "attached"
DECISION_THREADLESS = "threadless"


@dataclass(frozen=True)
class ThreadAssignment:
    property_id: Optional[str]
    parent_id: Optional[str]
    decision: str
    root_pk: Optional[int] = None  # storage id of the thread root, None for a new thread

    @property
    def is_root(self) -> bool:
        return self.parent_id == ROOT_PARENT_ID


class ThreadResolver:
    """
    Decide whether a message opens a new thread or extends the counterparty's active one.

    A message with zero property fields never opens a thread, whatever the
    classifier's boundary signal says. If such a message has no thread to join it
    stays threadless.
    """

    def __init__(self, id_factory: Callable[[], str] = lambda: str(uuid.uuid4())):
        self.id_factory = id_factory

    def resolve(
        self, conn: Connection, message: Any, result: ClassificationResult
    ) -> ThreadAssignment:
        """
        Args:
            conn: Active database connection
            message: The ClientMessage row being processed
            result: Classifier output for that message

        Returns:
            ThreadAssignment for the message

        Raises:
            ThreadInvariantError: If the active thread has no root message.
        """
        active = get_active_thread_message(conn, message.counterparty, message.timestamp)
        has_fields = result.has_property_fields

        if has_fields and (result.is_new_thread or active is None):
            property_id = self.id_factory()
            assignment = ThreadAssignment(property_id, ROOT_PARENT_ID, DECISION_NEW)
        elif active is None:
            assignment = ThreadAssignment(None, None, DECISION_THREADLESS)
        else:
            root = get_thread_root(conn, active.property_id)
            if root is None:
                raise ThreadInvariantError(active.property_id, "root message not found")
            assignment = ThreadAssignment(
                active.property_id, root.message_id, DECISION_ATTACHED, root_pk=root.id
            )

        if result.is_new_thread and not has_fields:
            logger.info("thread_boundary_ignored_no_fields", message_id=message.message_id)

        thread_decisions.labels(decision=assignment.decision).inc()
        logger.info(
            "thread_resolved",
            message_id=message.message_id,
            counterparty=message.counterparty,
            decision=assignment.decision,
            property_id=assignment.property_id,
        )
        return assignment
