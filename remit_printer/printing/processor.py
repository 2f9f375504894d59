"""
Queue processor: drains pending print jobs through the printer handle.

One pass (process_pending):
- snapshot the pending jobs; anything enqueued later waits for the next pass
- for each job in enqueue order: claim it (pending -> printing), check the
  monitor's latest snapshot, encode, write, then mark completed or failed
- a disconnected printer fails the job without encoding it
- one job failing never stops the pass

Passes are serialized by a lock, so only one job is ever `printing`, even if
process_pending() is called from several request threads at once.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Optional

from .encoder import ReceiptOptions, build_test_transaction, encode_receipt
from .errors import EncodingError, IllegalTransitionError, PrinterConnectionError, WriteError
from .handles import PrinterHandle
from .models import JobStatus, ProcessSummary, Transaction, utc_now
from .monitor import PrinterMonitor
from .print_queue import PrintQueue

logger = logging.getLogger(__name__)

Encoder = Callable[[Transaction, datetime, Optional[ReceiptOptions]], bytes]

DEFAULT_WRITE_TIMEOUT = 10.0
BUSY = "printer busy: previous write still in progress"


class QueueProcessor:
    def __init__(
        self,
        queue: PrintQueue,
        monitor: PrinterMonitor,
        handle: PrinterHandle,
        *,
        encoder: Encoder = encode_receipt,
        options: Optional[ReceiptOptions] = None,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queue = queue
        self.monitor = monitor
        self.handle = handle
        self.encoder = encoder
        self.options = options or ReceiptOptions()
        self.write_timeout = float(write_timeout)
        self.clock = clock
        self._pass_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="printer-write")
        self._inflight: Optional[Future] = None

    def _write(self, data: bytes) -> None:
        """
        Hand `data` to the device and wait at most `write_timeout`.

        A timed-out write keeps running on the worker thread and may still
        reach the printer. Until it returns, later writes are refused rather
        than queued behind it.
        """
        stuck = self._inflight
        if stuck is not None and not stuck.done():
            raise WriteError(BUSY)
        future = self._executor.submit(self.handle.write_bytes, data)
        self._inflight = future
        try:
            ok = future.result(timeout=self.write_timeout)
        except FutureTimeout as e:
            raise WriteError(f"write timeout after {self.write_timeout:.1f}s (delivery unknown)") from e
        except WriteError:
            raise
        except Exception as e:
            raise WriteError(f"write failed: {e}") from e
        if ok is False:
            raise WriteError("printer rejected write")

    def _print_one(self, job_id: str, transaction: Transaction) -> Optional[str]:
        """
        Print one claimed job. Returns None on success or the failure reason.
        """
        status = self.monitor.latest
        if not status.connected:
            reason = "printer disconnected"
            if status.errors:
                reason += ": " + ", ".join(status.errors)
            return reason
        try:
            data = self.encoder(transaction, self.clock(), self.options)
        except EncodingError as e:
            logger.warning("Cannot encode receipt for job %s: %s", job_id, e)
            return f"encoding error: {e}"
        try:
            self._write(data)
        except WriteError as e:
            logger.warning("Printer write failed for job %s: %s", job_id, e)
            return str(e)
        return None

    def process_pending(self) -> ProcessSummary:
        """
        Drain the pending jobs that exist when the pass starts.

        Returns a ProcessSummary with succeeded/failed counts. Printing errors
        end up on the jobs themselves; only programming errors propagate.
        """
        summary = ProcessSummary()
        with self._pass_lock:
            pending = self.queue.jobs_by_status(JobStatus.PENDING)
            if not pending:
                return summary
            logger.info("Processing %d pending print job(s)", len(pending))

            for job in pending:
                try:
                    self.queue.update_status(job.id, JobStatus.PRINTING)
                except IllegalTransitionError as e:
                    # Left the pending state since the snapshot; not ours to print.
                    logger.warning("Skipping print job %s: %s", job.id, e)
                    continue

                try:
                    reason = self._print_one(job.id, job.transaction)
                except Exception as e:
                    logger.exception("Unexpected error printing job %s", job.id)
                    reason = f"unexpected error: {e}"

                summary.jobs.append(job.id)
                if reason is None:
                    self.queue.update_status(job.id, JobStatus.COMPLETED)
                    summary.succeeded += 1
                    logger.info(
                        "Receipt printed for %s (job %s)", job.client_name or "client", job.id, extra={"job_id": job.id}
                    )
                else:
                    self.queue.update_status(job.id, JobStatus.FAILED, error=reason)
                    summary.failed += 1
                    logger.warning(
                        "Print failed for %s (job %s): %s",
                        job.client_name or "client",
                        job.id,
                        reason,
                        extra={"job_id": job.id},
                    )

        logger.info("Print pass finished: %d succeeded, %d failed", summary.succeeded, summary.failed)
        return summary

    def test_print(self, now: Optional[datetime] = None) -> Transaction:
        """
        Print a sample receipt directly, bypassing the queue.

        Raises:
            PrinterConnectionError: the latest snapshot says the printer is offline.
            WriteError: the device rejected the write or timed out.
        """
        now = now or self.clock()
        with self._pass_lock:
            if not self.monitor.latest.connected:
                raise PrinterConnectionError("Printer not connected")
            tx = build_test_transaction(now)
            self._write(self.encoder(tx, now, self.options))
        logger.info("Test receipt printed (%s)", tx.id)
        return tx

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


__all__ = ["BUSY", "DEFAULT_WRITE_TIMEOUT", "Encoder", "QueueProcessor"]
