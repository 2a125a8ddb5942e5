"""
Standalone master loop process.

Builds the pipeline from the environment and ticks until SIGINT/SIGTERM, then
flushes any queued sheet writes before exiting.
"""

from __future__ import annotations

import signal
from types import FrameType
from typing import Optional

import structlog
from sqlalchemy.engine import Engine

from sync_leads.config import CLIENT_SHEET_NAME, HISTORY_LIMIT, MASTER_LOOP_INTERVAL_SECONDS
from sync_leads.db.engine import create_db_engine
from sync_leads.logging_config import setup_logging
from sync_leads.network.llm_client import ChatCompletionClient
from sync_leads.services.classifier import ClassifierGateway
from sync_leads.services.client_sheet import ClientSheetSync
from sync_leads.services.credentials import CredentialsProvider
from sync_leads.services.message_processor import MessageProcessor
from sync_leads.services.orchestrator import MasterLoop
from sync_leads.services.property_merger import PropertyMerger
from sync_leads.services.schema_provider import SqlSchemaProvider
from sync_leads.services.sentiment import SentimentAggregator
from sync_leads.sheets.batcher import SheetBatcher
from sync_leads.sheets.client import GoogleSheetsSink

logger = structlog.get_logger(__name__)


def build_master_loop(engine: Optional[Engine] = None) -> MasterLoop:
    """
    Wire the pipeline. Credentials are resolved lazily, so a missing key surfaces as
    a failed tick rather than a startup crash.
    """
    engine = engine or create_db_engine()
    credentials = CredentialsProvider(engine)
    merger = PropertyMerger()
    aggregator = SentimentAggregator()

    classifier = ClassifierGateway(
        backend=ChatCompletionClient(api_key_getter=credentials.openai_key),
        schema_provider=SqlSchemaProvider(engine),
    )
    processor = MessageProcessor(
        engine,
        classifier,
        merger=merger,
        aggregator=aggregator,
        history_limit=HISTORY_LIMIT,
    )

    sink = GoogleSheetsSink(credentials, sheet_name=CLIENT_SHEET_NAME)
    sheet_sync = ClientSheetSync(engine, SheetBatcher(sink), merger=merger, aggregator=aggregator)

    return MasterLoop(processor, sheet_sync, interval=MASTER_LOOP_INTERVAL_SECONDS)


def shutdown(loop: MasterLoop) -> None:
    """Stop ticking and write out anything still queued for the sheet."""
    loop.stop()
    if loop.sheet_sync is not None:
        loop.sheet_sync.batcher.close()
    logger.info("master_loop_shutdown_complete")


def main() -> None:
    setup_logging()
    loop = build_master_loop()

    def _handle_signal(signum: int, frame: Optional[FrameType]) -> None:
        logger.info("shutdown_signal_received", signal=signal.Signals(signum).name)
        loop.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    loop.run_forever()
    shutdown(loop)


if __name__ == "__main__":
    main()
