"""
Master loop.

A tick drains the unprocessed message queue to empty, then runs one client sheet
sync pass. Ticks never overlap: a tick that fires while the previous one is still
running is skipped, not queued.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

import structlog

from sync_leads.config import MASTER_LOOP_INTERVAL_SECONDS
from sync_leads.metrics import pending_messages, tick_duration, ticks_total
from sync_leads.services.client_sheet import ClientSheetSync
from sync_leads.services.message_processor import MessageProcessor

logger = structlog.get_logger(__name__)


class MasterLoop:
    def __init__(
        self,
        processor: MessageProcessor,
        sheet_sync: Optional[ClientSheetSync] = None,
        interval: float = MASTER_LOOP_INTERVAL_SECONDS,
    ):
        self.processor = processor
        self.sheet_sync = sheet_sync
        self.interval = interval
        self._running = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        """True while a tick is in progress."""
        return self._running.locked()

    def tick(self) -> bool:
        """
        Run one tick unless another is in progress.

        Errors are logged and the tick ends early; the next tick starts fresh.

        Returns:
            bool: False if the tick was skipped because one was already running
        """
        if not self._running.acquire(blocking=False):
            logger.info("master_tick_skipped", reason="previous_tick_running")
            ticks_total.labels(status="skipped").inc()
            return False

        start = time.monotonic()
        try:
            with tick_duration.time():
                processed = self.drain()
                if self.sheet_sync is not None:
                    self.sheet_sync.sync()
            ticks_total.labels(status="success").inc()
            logger.info(
                "master_tick_completed",
                processed=processed,
                duration_seconds=round(time.monotonic() - start, 3),
            )
        except Exception as e:
            ticks_total.labels(status="failure").inc()
            logger.exception("master_tick_failed", error=str(e))
        finally:
            self._running.release()
        return True

    def drain(self) -> int:
        """
        Process messages until none are pending.

        Messages that fail are skipped for the rest of this tick and retried on the
        next one.

        Returns:
            int: number of messages processed
        """
        failed: set[int] = set()
        processed = 0
        while True:
            remaining = self.processor.count_pending(failed)
            pending_messages.set(remaining)
            if remaining == 0:
                break

            outcome = self.processor.process_next(failed)
            if outcome is None:
                break
            if outcome.processed:
                processed += 1
            else:
                failed.add(outcome.message_pk)

        if failed:
            logger.warning("messages_left_unprocessed", count=len(failed))
        return processed

    def run_forever(self) -> None:
        """Tick every interval seconds until stop() is called."""
        logger.info("master_loop_started", interval_seconds=self.interval)
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval)
        logger.info("master_loop_stopped")

    def start_background(self) -> threading.Thread:
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="master-loop", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the loop to exit after the current tick; joins the background thread if any."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
