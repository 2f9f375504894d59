"""
Print service: wires handle, monitor, queue and processor from config.

Flask-agnostic so it can be used from web routes, scripts and tests alike.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional

from .encoder import ReceiptOptions
from .handles import PrinterHandle, create_handle
from .models import PrintJob, PrinterStatus, ProcessSummary, Transaction
from .monitor import PrinterMonitor
from .print_queue import InMemoryJobStore, JobStore, PrintQueue
from .processor import QueueProcessor

logger = logging.getLogger(__name__)


def _create_store(config: Mapping[str, Any]) -> JobStore:
    kind = str(config.get("job_store", "memory")).lower()
    if kind == "memory":
        return InMemoryJobStore()
    if kind == "sqlite":
        from remit_printer.core.db import SqliteJobStore

        return SqliteJobStore(config.get("db_path") or None)
    raise RuntimeError(f"Unsupported job store: {kind}")


class PrintService:
    def __init__(
        self,
        handle: PrinterHandle,
        *,
        store: Optional[JobStore] = None,
        config: Optional[Mapping[str, Any]] = None,
        printer_type: str = "simulated",
    ):
        cfg = dict(config or {})
        self.config = cfg
        self.printer_type = printer_type
        self.handle = handle
        self.low_paper_threshold = int(cfg.get("low_paper_threshold", 20))
        self.display_limit = int(cfg.get("jobs_display_limit", 10))

        self.queue = PrintQueue(store)
        self.monitor = PrinterMonitor(
            handle,
            interval=float(cfg.get("poll_interval_seconds", 30)),
            timeout=float(cfg.get("poll_timeout_seconds", 5)),
            model=str(cfg.get("printer_model") or getattr(handle, "model", "") or "ESC/POS Thermal Printer"),
            low_paper_threshold=self.low_paper_threshold,
        )
        self.processor = QueueProcessor(
            self.queue,
            self.monitor,
            handle,
            options=ReceiptOptions.from_config(cfg),
            write_timeout=float(cfg.get("write_timeout_seconds", 10)),
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "PrintService":
        kind, handle = create_handle(config)
        store = _create_store(config)
        logger.info("Print service configured: printer=%s store=%s", kind, config.get("job_store", "memory"))
        return cls(handle, store=store, config=config, printer_type=kind)

    # ----- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Start the printer monitor (idempotent)."""
        self.monitor.start()

    def stop(self) -> None:
        self.monitor.shutdown()
        self.processor.shutdown()
        close = getattr(self.handle, "close", None)
        if callable(close):
            try:
                close()
            except Exception as e:
                logger.debug("Printer handle close failed: %s", e)
        self.queue.store.close()

    # ----- operations --------------------------------------------------------

    def enqueue(self, transaction: Transaction) -> PrintJob:
        return self.queue.enqueue(transaction)

    def process_pending(self) -> ProcessSummary:
        return self.processor.process_pending()

    def test_print(self, now: Optional[datetime] = None) -> Transaction:
        return self.processor.test_print(now)

    def printer_status(self) -> PrinterStatus:
        return self.monitor.latest

    def poll(self) -> PrinterStatus:
        return self.monitor.poll()

    def recent_jobs(self, limit: Optional[int] = None) -> List[PrintJob]:
        return self.queue.list_jobs(self.display_limit if limit is None else limit)

    def status(self) -> Dict[str, Any]:
        """
        Return basic monitor/queue status.
        """
        counts = self.queue.counts()
        return {
            "printer_type": self.printer_type,
            "monitor_running": self.monitor.running,
            "connection": self.monitor.state.value,
            "pending": counts["pending"],
            "failed": counts["failed"],
        }


__all__ = ["PrintService"]
