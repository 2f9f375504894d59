"""
Printer connection monitor.

Polls a PrinterHandle once at start and then on a fixed interval, and keeps
the latest PrinterStatus snapshot. The snapshot is the only thing shared with
the queue processor and the UI; both read it, only the monitor replaces it.

poll() never raises for hardware problems: exceptions and timeouts become a
disconnected snapshot carrying the failure in `errors`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, List, Optional

from .handles import PrinterHandle
from .models import DEFAULT_MODEL, ConnectionState, PrinterStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[[PrinterStatus], None]

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_POLL_TIMEOUT = 5.0
LOW_PAPER_THRESHOLD = 20


class PrinterMonitor:
    def __init__(
        self,
        handle: PrinterHandle,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        model: str = DEFAULT_MODEL,
        low_paper_threshold: int = LOW_PAPER_THRESHOLD,
    ):
        self.handle = handle
        self.interval = float(interval)
        self.timeout = float(timeout)
        self.model = model
        self.low_paper_threshold = int(low_paper_threshold)

        self._lock = threading.Lock()
        self._latest = PrinterStatus.disconnected("not yet polled", model=model)
        self._state = ConnectionState.CHECKING
        self._listeners: List[StatusListener] = []

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="printer-query")
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ----- snapshot access ---------------------------------------------------

    @property
    def latest(self) -> PrinterStatus:
        with self._lock:
            return self._latest

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    # ----- polling -----------------------------------------------------------

    def _query(self) -> PrinterStatus:
        future = self._executor.submit(self.handle.query_status)
        try:
            raw = future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning("Printer status query timed out after %.1fs", self.timeout)
            return PrinterStatus.disconnected("connection timeout", model=self.model)
        except Exception as e:
            logger.warning("Printer status query failed: %s", e)
            return PrinterStatus.disconnected(f"connection error: {e}", model=self.model)
        try:
            return PrinterStatus.from_raw(raw, model=self.model)
        except Exception as e:
            logger.warning("Printer returned an unreadable status: %s", e)
            return PrinterStatus.disconnected(f"invalid status: {e}", model=self.model)

    def poll(self) -> PrinterStatus:
        """
        Query the printer and replace the latest snapshot. Blocks for at most
        the configured timeout.
        """
        with self._lock:
            self._state = ConnectionState.CHECKING
        status = self._query()
        with self._lock:
            self._latest = status
            self._state = ConnectionState.CONNECTED if status.connected else ConnectionState.DISCONNECTED

        if status.connected:
            logger.info("Printer connected: paper=%d%% temp=%d", status.paper_level, status.temperature)
            if status.is_low_paper(self.low_paper_threshold):
                logger.warning("Printer paper low (%d%%)", status.paper_level)
        else:
            logger.warning("Printer disconnected: %s", ", ".join(status.errors))

        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Printer status listener failed")
        return status

    # ----- background loop ---------------------------------------------------

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll()
            if self._stop.wait(self.interval):
                break

    def start(self) -> None:
        """
        Start the polling thread (idempotent). Polls immediately, then every `interval` seconds.
        """
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        t = threading.Thread(target=self._run, daemon=True, name="printer-monitor")
        t.start()
        self._thread = t
        logger.info("Printer monitor started (interval=%.1fs)", self.interval)

    def stop(self, wait: bool = True) -> None:
        self._stop.set()
        t = self._thread
        if wait and t is not None and t is not threading.current_thread():
            t.join(timeout=self.timeout + 1.0)
        self._thread = None

    def shutdown(self) -> None:
        self.stop()
        self._executor.shutdown(wait=False)

    @property
    def running(self) -> bool:
        return bool(self._thread) and self._thread.is_alive()  # type: ignore[union-attr]


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_TIMEOUT",
    "LOW_PAPER_THRESHOLD",
    "PrinterMonitor",
    "StatusListener",
]
