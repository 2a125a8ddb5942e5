"""
Drain step: process the oldest unprocessed message.

Processing a message means classifying it with its recent history, assigning it to a
thread, storing its extraction, recomputing the thread's merged record array and
folding its sentiment into the thread root.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Optional

import structlog
from sqlalchemy.engine import Engine

from sync_leads.config import HISTORY_LIMIT
from sync_leads.db.readers.messages import (
    count_unprocessed,
    get_history,
    get_next_unprocessed,
    get_thread_root,
)
from sync_leads.db.writers.messages import mark_processed, set_merged_property
from sync_leads.errors import ConfigurationError, ThreadInvariantError
from sync_leads.metrics import messages_processed
from sync_leads.models.messages import DIRECTION_INCOMING
from sync_leads.schemas.classification import (
    DEFAULT_INTENT,
    ClassificationResult,
    RawFallback,
)
from sync_leads.services.classifier import ClassifierGateway
from sync_leads.services.property_merger import PropertyMerger
from sync_leads.services.sentiment import SentimentAggregator
from sync_leads.services.thread_resolver import ThreadAssignment, ThreadResolver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProcessOutcome:
    message_pk: int
    processed: bool
    property_id: Optional[str] = None
    decision: Optional[str] = None


def format_history(rows: Any) -> list[str]:
    """
    Format history rows (newest first, as queried) for the prompt, oldest first.

    Incoming messages are the client's; outgoing ones are the agent's.
    """
    return [
        f"{'Client' if m.direction == DIRECTION_INCOMING else 'Agent'}: {m.message}"
        for m in reversed(list(rows))
    ]


def stamp_records(
    result: ClassificationResult, assignment: ThreadAssignment
) -> list[dict[str, Any]]:
    """Attach conversation signals and thread linkage to each extracted record."""
    return [
        {
            **record,
            "client_sentiment": result.sentiment,
            "client_intent": result.client_intent or record.get("client_intent") or DEFAULT_INTENT,
            "propertyId": assignment.property_id,
            "parentId": assignment.parent_id,
        }
        for record in result.records
    ]


class MessageProcessor:
    def __init__(
        self,
        engine: Engine,
        classifier: ClassifierGateway,
        resolver: Optional[ThreadResolver] = None,
        merger: Optional[PropertyMerger] = None,
        aggregator: Optional[SentimentAggregator] = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.engine = engine
        self.classifier = classifier
        self.resolver = resolver or ThreadResolver()
        self.merger = merger or PropertyMerger()
        self.aggregator = aggregator or SentimentAggregator()
        self.history_limit = history_limit

    def count_pending(self, exclude_ids: Collection[int] = ()) -> int:
        with self.engine.connect() as conn:
            return count_unprocessed(conn, exclude_ids)

    def process_next(self, exclude_ids: Collection[int] = ()) -> Optional[ProcessOutcome]:
        """
        Process the oldest unprocessed message not in exclude_ids.

        Returns:
            None when nothing is pending, otherwise the outcome. A message that
            fails is reported with processed=False and left unprocessed.

        Raises:
            ConfigurationError: If classifier credentials are missing.
        """
        with self.engine.connect() as conn:
            message = get_next_unprocessed(conn, exclude_ids)
            if message is None:
                return None
            history = get_history(
                conn, message.counterparty, message.timestamp, message.id, self.history_limit
            )

        log = logger.bind(message_id=message.message_id, counterparty=message.counterparty)
        try:
            return self._process(message, format_history(history), log)
        except ConfigurationError:
            raise
        except ThreadInvariantError as e:
            log.error("thread_invariant_violated", property_id=e.property_id, reason=e.reason)
        except Exception as e:
            log.exception("message_processing_failed", error=str(e))

        messages_processed.labels(direction=message.direction, outcome="failed").inc()
        return ProcessOutcome(message_pk=message.id, processed=False)

    def _process(self, message: Any, history: list[str], log: Any) -> ProcessOutcome:
        # Classify outside the transaction; the LLM call can be slow
        result = self.classifier.classify(message.message, bool(message.is_group), history)

        with self.engine.begin() as conn:
            assignment = self.resolver.resolve(conn, message, result)
            mark_processed(
                conn,
                message.id,
                extraction=stamp_records(result, assignment),
                property_id=assignment.property_id,
                parent_id=assignment.parent_id,
                sentiment=result.sentiment,
                intent=result.client_intent,
                status=result.status,
            )

            if assignment.property_id is not None:
                merged = self.merger.merge(conn, assignment.property_id)
                set_merged_property(conn, message.id, merged)

                root = get_thread_root(conn, assignment.property_id)
                if root is None:
                    raise ThreadInvariantError(assignment.property_id, "root message not found")
                self.aggregator.record(conn, root, message, result.sentiment, result.status)

        outcome = "fallback" if isinstance(result, RawFallback) else "processed"
        messages_processed.labels(direction=message.direction, outcome=outcome).inc()
        log.info(
            "message_processed",
            property_id=assignment.property_id,
            decision=assignment.decision,
            sentiment=result.sentiment,
            records=len(result.records),
        )
        return ProcessOutcome(
            message_pk=message.id,
            processed=True,
            property_id=assignment.property_id,
            decision=assignment.decision,
        )
