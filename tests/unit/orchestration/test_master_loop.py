"""
Unit tests for the master loop: drain-to-empty, mutual exclusion and failure handling.
"""

from __future__ import annotations

import threading
from typing import Collection, Optional
from unittest.mock import Mock

import pytest

from sync_leads.errors import ConfigurationError
from sync_leads.services.message_processor import ProcessOutcome
from sync_leads.services.orchestrator import MasterLoop


class QueueProcessor:
    """Processor double over an in-memory queue of message ids."""

    def __init__(self, count: int, failing: Collection[int] = ()):
        self.queue = list(range(1, count + 1))
        self.failing = set(failing)
        self.calls = 0

    def count_pending(self, exclude_ids: Collection[int] = ()) -> int:
        return len([m for m in self.queue if m not in exclude_ids])

    def process_next(self, exclude_ids: Collection[int] = ()) -> Optional[ProcessOutcome]:
        self.calls += 1
        pending = [m for m in self.queue if m not in exclude_ids]
        if not pending:
            return None
        pk = pending[0]
        if pk in self.failing:
            return ProcessOutcome(message_pk=pk, processed=False)
        self.queue.remove(pk)
        return ProcessOutcome(message_pk=pk, processed=True)


@pytest.mark.unit
def test_tick_drains_queue_to_empty_then_syncs() -> None:
    processor = QueueProcessor(25)
    sheet_sync = Mock()
    loop = MasterLoop(processor, sheet_sync, interval=10)  # type: ignore[arg-type]

    assert loop.tick() is True

    assert processor.queue == []
    assert processor.calls == 25
    sheet_sync.sync.assert_called_once()


@pytest.mark.unit
def test_failing_message_is_skipped_for_the_rest_of_the_tick() -> None:
    processor = QueueProcessor(5, failing={2})
    loop = MasterLoop(processor, None)  # type: ignore[arg-type]

    loop.tick()

    assert processor.queue == [2]
    assert processor.calls == 5


@pytest.mark.unit
def test_overlapping_tick_is_skipped() -> None:
    entered = threading.Event()
    release = threading.Event()

    class BlockingProcessor(QueueProcessor):
        def process_next(self, exclude_ids: Collection[int] = ()) -> Optional[ProcessOutcome]:
            entered.set()
            release.wait(5)
            return super().process_next(exclude_ids)

    processor = BlockingProcessor(1)
    loop = MasterLoop(processor, None)  # type: ignore[arg-type]
    first = threading.Thread(target=loop.tick)
    first.start()
    assert entered.wait(5)

    assert loop.is_running is True
    assert loop.tick() is False
    assert processor.calls == 0

    release.set()
    first.join(5)
    assert processor.queue == []
    assert loop.is_running is False


@pytest.mark.unit
def test_errors_are_logged_and_lock_is_released() -> None:
    processor = Mock()
    processor.count_pending.return_value = 1
    processor.process_next.side_effect = ConfigurationError("OpenAI API key is not configured")
    sheet_sync = Mock()
    loop = MasterLoop(processor, sheet_sync)

    assert loop.tick() is True
    assert loop.is_running is False
    sheet_sync.sync.assert_not_called()

    processor.process_next.side_effect = None
    processor.count_pending.return_value = 0
    assert loop.tick() is True
    sheet_sync.sync.assert_called_once()


@pytest.mark.unit
def test_sync_failure_does_not_crash_the_loop() -> None:
    sheet_sync = Mock()
    sheet_sync.sync.side_effect = RuntimeError("sheets down")
    loop = MasterLoop(QueueProcessor(0), sheet_sync)  # type: ignore[arg-type]

    assert loop.tick() is True
    assert loop.is_running is False


@pytest.mark.unit
def test_background_loop_ticks_until_stopped() -> None:
    ticked = threading.Event()
    sheet_sync = Mock()
    sheet_sync.sync.side_effect = lambda: ticked.set()
    loop = MasterLoop(QueueProcessor(3), sheet_sync, interval=0.01)  # type: ignore[arg-type]

    loop.start_background()
    assert ticked.wait(5)
    loop.stop(timeout=5)

    assert sheet_sync.sync.call_count >= 1
