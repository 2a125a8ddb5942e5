"""
Integration tests for the client sheet sync pass: append once, then update in place.
"""

from __future__ import annotations

from typing import Callable

import pytest
from sqlalchemy.engine import Engine

from conftest import FakeSink, ScriptedBackend, fetch_message, utc
from sync_leads.errors import ConfigurationError, SheetWriteError
from sync_leads.models.messages import DIRECTION_OUTGOING
from sync_leads.services.classifier import ClassifierGateway
from sync_leads.services.client_sheet import ClientSheetSync
from sync_leads.services.message_processor import MessageProcessor
from sync_leads.services.schema_provider import StaticSchemaProvider
from sync_leads.sheets.batcher import SheetBatcher

REPLIES = {
    "2BR in Marina": {"location": "Marina", "bedrooms": 2, "client_sentiment": "Interested"},
    "Villa in Arabian Ranches": {"location": "Arabian Ranches", "client_sentiment": "Neutral"},
    "Viewing tomorrow?": {"client_sentiment": "Highly Interested", "follow_up_status": "viewing"},
}


def drain(engine: Engine) -> None:
    processor = MessageProcessor(
        engine, ClassifierGateway(ScriptedBackend(REPLIES), StaticSchemaProvider())
    )
    while processor.process_next() is not None:
        pass


def make_sync(engine: Engine, sink: FakeSink, dry_run: bool = False) -> ClientSheetSync:
    return ClientSheetSync(engine, SheetBatcher(sink, flush_interval=60), dry_run=dry_run)


@pytest.mark.integration
def test_thread_is_appended_once_then_updated_in_place(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    root = add_message("2BR in Marina", utc(2025, 6, 1, 10))
    drain(engine)
    sink = FakeSink(next_row=7)
    sheet_sync = make_sync(engine, sink)

    first = sheet_sync.sync()
    assert first.written == 1
    assert fetch_message(engine, root).sheet_row_index == 7

    assert sheet_sync.sync().written == 0

    add_message("Viewing tomorrow?", utc(2025, 6, 2, 10), direction=DIRECTION_OUTGOING)
    drain(engine)
    assert fetch_message(engine, root).needs_sheet_sync is True

    assert sheet_sync.sync().written == 1
    assert len(sink.append_calls) == 1
    assert sink.update_calls[0][0][0] == 7
    assert sink.rows[7][9] == "Highly Interested"
    assert sink.rows[7][12] == "viewing"

    synced = fetch_message(engine, root)
    assert synced.needs_sheet_sync is False
    assert synced.sheet_synced is True
    assert synced.last_sheet_synced_at is not None


@pytest.mark.integration
def test_threads_are_written_in_one_batch(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    add_message("2BR in Marina", utc(2025, 6, 1, 10))
    add_message("Villa in Arabian Ranches", utc(2025, 6, 1, 11), counterparty="971509999999@c.us")
    drain(engine)
    sink = FakeSink()

    summary = make_sync(engine, sink).sync()

    assert summary.written == 2
    assert len(sink.append_calls) == 1
    assert [row[8] for row in sink.append_calls[0]] == ["Marina", "Arabian Ranches"]
    assert [row[5] for row in sink.append_calls[0]] == ["971501234567", "971509999999"]


@pytest.mark.integration
def test_failed_write_leaves_thread_flagged_for_next_pass(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    root = add_message("2BR in Marina", utc(2025, 6, 1, 10))
    drain(engine)
    sink = FakeSink()
    sink.fail_with = SheetWriteError("rate limited", status_code=429)
    sheet_sync = make_sync(engine, sink)

    summary = sheet_sync.sync()

    assert summary.failed == 1
    message = fetch_message(engine, root)
    assert message.sheet_synced is False
    assert message.sheet_row_index is None

    sink.fail_with = None
    assert sheet_sync.sync().written == 1
    assert fetch_message(engine, root).sheet_row_index == 2


@pytest.mark.integration
def test_missing_sheet_configuration_propagates(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    class Unconfigured(FakeSink):
        def ensure_headers(self, force: bool = False) -> None:
            raise ConfigurationError("Google Sheet ID is not configured")

    add_message("2BR in Marina", utc(2025, 6, 1, 10))
    drain(engine)

    with pytest.raises(ConfigurationError):
        make_sync(engine, Unconfigured()).sync()


@pytest.mark.integration
def test_dry_run_writes_nothing(engine: Engine, add_message: Callable[..., int]) -> None:
    root = add_message("2BR in Marina", utc(2025, 6, 1, 10))
    drain(engine)
    sink = FakeSink()

    summary = make_sync(engine, sink, dry_run=True).sync()

    assert summary.skipped == 1
    assert sink.rows == {}
    assert fetch_message(engine, root).sheet_synced is False
