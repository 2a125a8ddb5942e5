"""
Write batching in front of the sheet sink.

Row writes are queued and flushed together when the queue reaches the batch size
or when the flush interval elapses after the first queued write, whichever comes
first. Each submitted write gets a Future that resolves to the sheet row index the
row ended up in (or raises the sink's error).
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from sync_leads.config import SHEET_BATCH_SIZE, SHEET_BATCH_TIMEOUT_SECONDS
from sync_leads.metrics import sheet_batch_size, sheet_writes

logger = structlog.get_logger(__name__)


class RowSink(Protocol):
    def ensure_headers(self, force: bool = False) -> None: ...

    def append_rows(self, rows: list[list[str]]) -> list[int]: ...

    def update_rows(self, rows: list[tuple[int, list[str]]]) -> None: ...


@dataclass
class RowWrite:
    """One row to write. row_index set means update in place, otherwise append."""

    values: list[str]
    row_index: Optional[int] = None
    key: str = ""


_Pending = tuple[RowWrite, "Future[int]"]


class SheetBatcher:
    def __init__(
        self,
        sink: RowSink,
        max_batch_size: int = SHEET_BATCH_SIZE,
        flush_interval: float = SHEET_BATCH_TIMEOUT_SECONDS,
    ):
        self.sink = sink
        self.max_batch_size = max_batch_size
        self.flush_interval = flush_interval
        self._pending: list[_Pending] = []
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._closed = False

    def submit(self, write: RowWrite) -> "Future[int]":
        """Queue a row write. Flushes inline once the batch is full."""
        future: Future[int] = Future()
        batch: list[_Pending] = []
        with self._lock:
            if self._closed:
                raise RuntimeError("SheetBatcher is closed")
            self._pending.append((write, future))
            if len(self._pending) >= self.max_batch_size:
                batch = self._take_pending()
            elif self._timer is None:
                self._timer = threading.Timer(self.flush_interval, self.flush)
                self._timer.daemon = True
                self._timer.start()
        if batch:
            self._write_batch(batch)
        return future

    def flush(self) -> int:
        """Write everything queued now. Returns the number of writes flushed."""
        with self._lock:
            batch = self._take_pending()
        if batch:
            self._write_batch(batch)
        return len(batch)

    def close(self) -> None:
        """Flush what is left and refuse further writes."""
        with self._lock:
            self._closed = True
        self.flush()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _take_pending(self) -> list[_Pending]:
        # Caller holds self._lock
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        batch, self._pending = self._pending, []
        return batch

    def _write_batch(self, batch: list[_Pending]) -> None:
        with self._write_lock:
            sheet_batch_size.observe(len(batch))
            try:
                self.sink.ensure_headers()
            except Exception as e:
                logger.error("sheet_batch_setup_failed", error=str(e), batch_size=len(batch))
                for _, future in batch:
                    future.set_exception(e)
                return

            updates = [(w, f) for w, f in batch if w.row_index is not None]
            appends = [(w, f) for w, f in batch if w.row_index is None]

            if updates:
                try:
                    self.sink.update_rows([(w.row_index, w.values) for w, _ in updates])
                except Exception as e:
                    logger.error("sheet_update_failed", error=str(e), rows=len(updates))
                    sheet_writes.labels(operation="update", status="failure").inc(len(updates))
                    for _, future in updates:
                        future.set_exception(e)
                else:
                    sheet_writes.labels(operation="update", status="success").inc(len(updates))
                    for w, future in updates:
                        future.set_result(w.row_index)

            if appends:
                try:
                    indices = self.sink.append_rows([w.values for w, _ in appends])
                except Exception as e:
                    logger.error("sheet_append_failed", error=str(e), rows=len(appends))
                    sheet_writes.labels(operation="append", status="failure").inc(len(appends))
                    for _, future in appends:
                        future.set_exception(e)
                else:
                    sheet_writes.labels(operation="append", status="success").inc(len(appends))
                    for (_, future), row_index in zip(appends, indices):
                        future.set_result(row_index)

            logger.info(
                "sheet_batch_flushed",
                batch_size=len(batch),
                updates=len(updates),
                appends=len(appends),
            )
